"""Book catalog interface."""

from typing import Protocol, runtime_checkable

from ..entities.book import BookDraft


@runtime_checkable
class BookCatalog(Protocol):
    """Protocol for a public book catalog used to prefill new books."""

    async def search(self, query: str, limit: int = 10) -> list[BookDraft]:
        """Look up books matching a free-text query.

        Args:
            query: Title, author or ISBN text.
            limit: Maximum number of results.

        Returns:
            list[BookDraft]: Drafts ready to be added to a library.

        Raises:
            BackendError: If the catalog could not be reached or refused the query.
        """
        ...
