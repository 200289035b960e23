"""HTTP and WebSocket routers."""
from .simulation import router as simulation_router
from .ws import router as ws_router

__all__ = ["simulation_router", "ws_router"]
