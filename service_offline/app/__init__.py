"""
Offline cache service package for the blog.

The service sits in front of the blog origin and answers requests the way
the blog's PWA worker does:
- Route classification: which caching strategy handles a path
- Strategies: cache-first, network-first, stale-while-revalidate, cache-only
- Background sync: replay of offline mutations and new-post checks
- Cache management: stats, eviction and pre-warming for the settings panel

Structure:
- app.main: FastAPI app, admin routes and the proxy catch-all.
- app.worker: lifecycle events (install/activate/fetch/sync/push/message).
- app.adapters: network client and notification outbox.
- app.caching: cache stores, version names and the cache manager.
- app.routing / app.strategies / app.sync: the core offline behaviour.
"""
