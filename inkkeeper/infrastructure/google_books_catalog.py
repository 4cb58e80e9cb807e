"""Google Books implementation of BookCatalog."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..domain.entities.book import BookDraft, BookFormat
from ..domain.errors import BackendError
from ..domain.interfaces.book_catalog import BookCatalog

logger = logging.getLogger(__name__)

DEFAULT_PAGE_COUNT = 300


class GoogleBooksCatalog(BookCatalog):
    """Searches the public Google Books volumes API.

    Only ``volumeInfo`` is read. Volumes without a title are skipped and a
    missing page count falls back to ``DEFAULT_PAGE_COUNT``.
    """

    def __init__(
        self,
        base_url: str = "https://www.googleapis.com/books/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def search(self, query: str, limit: int = 10) -> List[BookDraft]:
        params = {"q": query, "maxResults": str(limit)}
        try:
            response = await self._client.get("/volumes", params=params)
        except httpx.HTTPError as e:
            logger.error(f"Book search for '{query}' failed: {e}")
            raise BackendError(f"Could not reach the book catalog: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.error(f"Book search for '{query}' returned {response.status_code}: {message}")
            raise BackendError(message)

        items = response.json().get("items") or []
        drafts = [draft for draft in (_volume_to_draft(item) for item in items) if draft is not None]
        logger.info(f"Book search for '{query}' returned {len(drafts)} result(s)")
        return drafts


def _volume_to_draft(item: Dict[str, Any]) -> Optional[BookDraft]:
    info = item.get("volumeInfo") or {}
    title = (info.get("title") or "").strip()
    if not title:
        return None

    authors = info.get("authors") or []
    categories = info.get("categories") or []
    return BookDraft(
        title=title[:300],
        author=authors[0] if authors else "Unknown",
        format=BookFormat.PHYSICAL,
        total_units=info.get("pageCount") or DEFAULT_PAGE_COUNT,
        cover_url=_secure_url((info.get("imageLinks") or {}).get("thumbnail")),
        genre_type=_genre_type(categories[0] if categories else ""),
    )


def _secure_url(url: Optional[str]) -> Optional[str]:
    if url and url.startswith("http://"):
        return "https://" + url[len("http://"):]
    return url


def _genre_type(category: str) -> str:
    lowered = category.lower()
    if "fiction" in lowered and "non-fiction" not in lowered and "nonfiction" not in lowered:
        return "fiction"
    return "non-fiction"


def _error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error") or {}
    except ValueError:
        error = {}
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return response.reason_phrase or f"HTTP {response.status_code}"
