# FastAPI Routers
from basepack.routers.components import router as components_router

__all__ = ["components_router"]
