from .turns import router as turns_router

__all__ = ["turns_router"]
