"""percycore -- Local control-plane API for the Percy visual-testing agent.

This package implements the HTTP/WebSocket API that SDKs talk to while a
Percy agent is running (healthcheck, config, snapshots, idle, stop), a
testing mode that can script failures for SDK integration tests, and a
static file server with an automatic sitemap.
"""

__version__ = "0.1.0"
