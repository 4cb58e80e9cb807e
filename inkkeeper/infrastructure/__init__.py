"""Infrastructure layer components."""

from .dynamodb_backend_gateway import DynamoDBBackendGateway
from .google_books_catalog import GoogleBooksCatalog
from .local_backend_gateway import LocalBackendGateway
from .postgrest_backend_gateway import PostgrestBackendGateway

__all__ = [
    "DynamoDBBackendGateway",
    "GoogleBooksCatalog",
    "LocalBackendGateway",
    "PostgrestBackendGateway",
]
