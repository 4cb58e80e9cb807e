"""Library management: adding books, swapping the active read and shelves."""

import logging
from typing import Optional

from ..entities.book import Book, BookDraft, BookStatus
from ..entities.session_context import SessionContext
from ..entities.stats import LibraryView
from ..errors import DuplicateBookError, NotFoundError, SessionValidationError
from ..interfaces.backend_gateway import BackendGateway
from ..interfaces.book_catalog import BookCatalog

logger = logging.getLogger(__name__)


class LibraryService:
    """Library operations for one user's books."""

    def __init__(self, backend: BackendGateway, catalog: Optional[BookCatalog] = None, search_limit: int = 10):
        self.backend = backend
        self.catalog = catalog
        self.search_limit = search_limit

    async def list_library(self, context: SessionContext) -> LibraryView:
        """Group the user's books by status, with the active book first."""
        profile = await self.backend.fetch_profile(context.user_id)
        books = await self.backend.list_books(context.user_id)

        # stable sort keeps the newest-first order for everything else
        books.sort(key=lambda b: b.id != profile.active_book_id)

        view = LibraryView(active_book_id=profile.active_book_id)
        for book in books:
            if book.status == BookStatus.ACTIVE:
                view.active.append(book)
            elif book.status == BookStatus.WISHLIST:
                view.wishlist.append(book)
            else:
                view.finished.append(book)
        return view

    async def add_book(
        self,
        context: SessionContext,
        draft: BookDraft,
        allow_duplicate: bool = False,
    ) -> Book:
        """
        Add a book to the user's library.

        Without an explicit status the book goes to the wishlist when the
        user is already reading something, otherwise it becomes active.
        A book added as active becomes the profile's active book.

        Args:
            context: Who is adding the book.
            draft: The book details.
            allow_duplicate: Add even if a book with the same title exists.

        Returns:
            Book: The stored book.

        Raises:
            DuplicateBookError: If the title already exists and duplicates are not allowed.
        """
        profile = await self.backend.fetch_profile(context.user_id)

        if not allow_duplicate and await self.has_duplicate(context, draft.title):
            raise DuplicateBookError(draft.title)

        status = draft.status
        if status is None:
            status = BookStatus.WISHLIST if profile.active_book_id else BookStatus.ACTIVE

        book = await self.backend.insert_book(
            Book(
                user_id=context.user_id,
                title=draft.title.strip(),
                author=draft.author,
                format=draft.format,
                total_units=draft.total_units,
                status=status,
                current_unit=0,
                cover_url=draft.cover_url,
                genre_type=draft.genre_type,
            )
        )
        logger.info(f"Added book {book.id} ({status.value}) for user {context.user_id}")

        if status == BookStatus.ACTIVE:
            await self.backend.set_active_book(context.user_id, book.id)

        return book

    async def has_duplicate(self, context: SessionContext, title: str) -> bool:
        """Case-insensitive title match against the user's library."""
        wanted = title.strip().casefold()
        books = await self.backend.list_books(context.user_id)
        return any(book.title.strip().casefold() == wanted for book in books)

    async def swap_active_book(self, context: SessionContext, book_id: str) -> bool:
        """
        Make ``book_id`` the book being read.

        Returns:
            bool: False when the book was already active, True otherwise.

        Raises:
            NotFoundError: If the book does not belong to the user.
        """
        profile = await self.backend.fetch_profile(context.user_id)
        if profile.active_book_id == book_id:
            return False

        book = await self.backend.fetch_book(book_id)
        if book.user_id != context.user_id:
            raise NotFoundError(f"Book with id {book_id} not found")

        await self.backend.set_active_book(context.user_id, book_id)
        logger.info(f"User {context.user_id} swapped active book to {book_id}")
        return True

    async def create_shelf(self, context: SessionContext, name: str, book_ids: list[str]) -> str:
        """
        Put the selected books on a named shelf.

        A shelf only exists through its books, so at least one is required.

        Returns:
            str: The normalized shelf name.

        Raises:
            SessionValidationError: If the name is blank or no book is selected.
        """
        shelf_name = name.strip()
        if not shelf_name:
            raise SessionValidationError("Please give your shelf a name.")
        if not book_ids:
            raise SessionValidationError("A shelf needs at least one book to exist.")

        await self.backend.update_shelf(context.user_id, list(dict.fromkeys(book_ids)), shelf_name)
        logger.info(f"User {context.user_id} moved {len(book_ids)} book(s) to shelf '{shelf_name}'")
        return shelf_name

    async def search_books(self, query: str) -> list[BookDraft]:
        """
        Search the public catalog for books to add.

        Results are drafts; nothing is stored until ``add_book`` is called
        with one of them.

        Returns:
            list[BookDraft]: Matches, empty for a blank query or when no catalog is configured.

        Raises:
            BackendError: If the catalog could not be reached.
        """
        query = query.strip()
        if not query:
            return []
        if self.catalog is None:
            logger.warning("Book search requested but no catalog is configured")
            return []
        return await self.catalog.search(query, limit=self.search_limit)
