"""Blog offline cache service."""
