"""HTTP API for the finance gateway."""

from finance_gateway.api.app import create_app

__all__ = ["create_app"]
