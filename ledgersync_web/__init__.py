"""
LedgerSync web layer.

Routers are mounted by ledgersync_web.app.create_app():
- ledgersync_web.auth_routes.router  (/auth)
- ledgersync_web.sync_routes.router  (/sync)
"""
