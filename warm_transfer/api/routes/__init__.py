"""API Routes module."""

from warm_transfer.api.routes.transfer import router as transfer_router

__all__ = ["transfer_router"]
