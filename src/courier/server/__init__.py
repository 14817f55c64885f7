"""HTTP server for Courier."""

from courier.server.app import CourierServer, create_app

__all__ = [
    "CourierServer",
    "create_app",
]
