# API routers
from .exam_router import router as exam_router

__all__ = ["exam_router"]
