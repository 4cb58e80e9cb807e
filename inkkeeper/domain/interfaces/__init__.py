"""Domain interfaces for the Inkkeeper application."""

from .backend_gateway import BackendGateway
from .book_catalog import BookCatalog

__all__ = ["BackendGateway", "BookCatalog"]
