from __future__ import annotations

from rate_bastion.api.routes.health import router as health_router
from rate_bastion.api.routes.ping import router as ping_router

__all__ = ["health_router", "ping_router"]
