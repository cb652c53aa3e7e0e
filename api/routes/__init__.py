from .generate import router as generate_router

__all__ = [
    "generate_router",
]
