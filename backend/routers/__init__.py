"""
Routers package for API endpoints
"""

from . import price_update

__all__ = ["price_update"]
