"""HTTP servers for percycore.

Public API:
    create_percy_server -- Control API application for a running agent
    create_static_server -- Static file server with rewrites and a sitemap
    StaticServerOptions -- What the static server serves and how
    create_uvicorn_server -- uvicorn server supporting dropped connections
"""

from percycore.server.api import create_percy_server
from percycore.server.protocol import create_uvicorn_server
from percycore.server.static import StaticServerOptions, create_static_server

__all__ = [
    "StaticServerOptions",
    "create_percy_server",
    "create_static_server",
    "create_uvicorn_server",
]
