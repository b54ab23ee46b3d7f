"""Background sync of offline mutations."""
