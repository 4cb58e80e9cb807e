"""PostgREST (hosted Postgres) implementation of BackendGateway."""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from ..domain.entities.book import Book
from ..domain.entities.companion import Companion
from ..domain.entities.profile import Profile, StreakFreezeResult
from ..domain.entities.reading_session import LogSessionRequest, ReadingSession, ReflectionData
from ..domain.entities.stats import ReadingSummary
from ..domain.errors import BackendError, NotFoundError
from ..domain.interfaces.backend_gateway import BackendGateway

logger = logging.getLogger(__name__)

SINGLE_OBJECT = "application/vnd.pgrst.object+json"


class PostgrestBackendGateway(BackendGateway):
    """Talks to the hosted backend through its PostgREST API.

    Tables are read and written under ``/rest/v1/<table>`` and the
    server-side functions (``log_session_atomic``, ``use_streak_freeze``,
    ``reset_broken_streak``, ``get_reading_summary`` and
    ``delete_user_account``) are called under ``/rest/v1/rpc/<name>``.
    Error bodies carry a ``message`` that is surfaced to the user as is.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the gateway.

        Args:
            base_url: Project URL, without the ``/rest/v1`` suffix.
            api_key: Key sent as ``apikey`` and bearer token.
            timeout: Request timeout in seconds.
            transport: Optional transport, used by tests to stub the server.
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # ===== Reads =====

    async def fetch_profile(self, user_id: str) -> Profile:
        row = await self._fetch_one("profiles", user_id, f"Profile for user {user_id} not found")
        return self._row_to_profile(row)

    async def fetch_book(self, book_id: str) -> Book:
        row = await self._fetch_one("books", book_id, f"Book with id {book_id} not found")
        return self._row_to_book(row)

    async def fetch_companion(self, companion_id: str) -> Companion:
        row = await self._fetch_one("companions", companion_id, f"Companion with id {companion_id} not found")
        return self._row_to_companion(row)

    async def list_books(self, user_id: str) -> List[Book]:
        response = await self._request(
            "GET", "/books", params={"user_id": f"eq.{user_id}", "select": "*", "order": "created_at.desc"}
        )
        return [self._row_to_book(row) for row in response.json()]

    async def list_sessions(self, user_id: str, limit: Optional[int] = None) -> List[ReadingSession]:
        params = {"user_id": f"eq.{user_id}", "select": "*", "order": "created_at.desc"}
        if limit is not None:
            params["limit"] = str(limit)
        response = await self._request("GET", "/sessions", params=params)
        return [self._row_to_session(row) for row in response.json()]

    async def get_reading_summary(self, user_id: str, start_date: date, end_date: date) -> ReadingSummary:
        rows = await self._rpc(
            "get_reading_summary",
            {
                "p_user_id": user_id,
                "p_start_date": start_date.isoformat(),
                "p_end_date": end_date.isoformat(),
            },
        )
        row = _first(rows) or {}
        best_day = row.get("best_day_date")
        return ReadingSummary(
            start_date=start_date,
            end_date=end_date,
            total_minutes_read=row.get("total_minutes_read") or 0,
            total_pages_read=row.get("total_pages_read") or 0,
            total_sessions=row.get("total_sessions") or 0,
            best_day_date=date.fromisoformat(best_day[:10]) if best_day else None,
            most_sessions_in_a_day=row.get("most_sessions_in_a_day") or 0,
        )

    # ===== Writes =====

    async def log_session_atomic(self, request: LogSessionRequest) -> None:
        """Call the ``log_session_atomic`` function; the database runs it as one transaction."""
        payload: Dict[str, Any] = {
            "p_user_id": request.user_id,
            "p_book_id": request.book_id,
            "p_active_companion_id": request.companion_id,
            "p_duration_seconds": request.duration_seconds,
            "p_pages_read": request.units_read,
            "p_reflection_data": request.reflection_data.model_dump(exclude_none=True),
            "p_ink_gained": request.ink_gained,
            "p_xp_gained": request.xp_gained,
            "p_new_book_unit": request.new_book_unit,
        }
        if request.new_book_status is not None:
            payload["p_new_book_status"] = request.new_book_status.value
        await self._rpc("log_session_atomic", payload)
        logger.info(f"Logged session for user {request.user_id}, book {request.book_id}")

    async def use_streak_freeze(self, user_id: str) -> StreakFreezeResult:
        result = _first(await self._rpc("use_streak_freeze", {"p_user_id": user_id})) or {}
        return StreakFreezeResult(
            success=bool(result.get("success")),
            freezes_remaining=result.get("freezes_remaining") or 0,
        )

    async def reset_broken_streak(self, user_id: str) -> None:
        await self._rpc("reset_broken_streak", {"p_user_id": user_id})

    async def insert_book(self, book: Book) -> Book:
        response = await self._request(
            "POST",
            "/books",
            json=self._book_to_row(book),
            headers={"Prefer": "return=representation"},
        )
        return self._row_to_book(_first(response.json()))

    async def set_active_book(self, user_id: str, book_id: str) -> None:
        await self._request("PATCH", "/profiles", params={"id": f"eq.{user_id}"}, json={"active_book_id": book_id})

    async def update_shelf(self, user_id: str, book_ids: List[str], shelf_name: str) -> None:
        await self._request(
            "PATCH",
            "/books",
            params={"id": f"in.({','.join(book_ids)})", "user_id": f"eq.{user_id}"},
            json={"shelf_name": shelf_name},
        )

    async def delete_user_account(self, user_id: str) -> None:
        await self._rpc("delete_user_account", {"p_user_id": user_id})
        logger.info(f"Deleted account of user {user_id}")

    # ===== HTTP helpers =====

    async def _fetch_one(self, table: str, row_id: str, not_found: str) -> Dict[str, Any]:
        response = await self._request(
            "GET",
            f"/{table}",
            params={"id": f"eq.{row_id}", "select": "*"},
            headers={"Accept": SINGLE_OBJECT},
            not_found=not_found,
        )
        return response.json()

    async def _rpc(self, function: str, payload: Dict[str, Any]) -> Any:
        response = await self._request("POST", f"/rpc/{function}", json=payload)
        if not response.content:
            return None
        return response.json()

    async def _request(self, method: str, path: str, not_found: Optional[str] = None, **kwargs) -> httpx.Response:
        """Send a request and translate failures.

        Raises:
            NotFoundError: If a single-object read matched no row.
            BackendError: If the server answered with an error or could not be reached.
        """
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise BackendError(f"Could not reach the server: {e}") from e

        if response.status_code == 406 and not_found is not None:
            raise NotFoundError(not_found)

        if response.is_error:
            body = _error_body(response)
            message = body.get("message") or response.reason_phrase or f"HTTP {response.status_code}"
            logger.error(f"{method} {path} returned {response.status_code}: {message}")
            raise BackendError(message, code=body.get("code"))

        return response

    # ===== Row mappers =====

    def _row_to_profile(self, row: Dict[str, Any]) -> Profile:
        return Profile(
            user_id=row["id"],
            email=row.get("email"),
            ink_drops=row.get("ink_drops") or 0,
            active_book_id=row.get("active_book_id"),
            active_companion_id=row.get("active_companion_id"),
            current_streak=row.get("current_streak") or 0,
            streak_freezes_available=row.get("streak_freezes_available") or 0,
            last_session_at=row.get("last_session_at"),
            daily_goal_amount=row.get("daily_goal_amount"),
            preferred_format=row.get("preferred_format"),
            timezone=row.get("timezone"),
        )

    def _book_to_row(self, book: Book) -> Dict[str, Any]:
        return book.model_dump(mode="json", exclude_none=True)

    def _row_to_book(self, row: Dict[str, Any]) -> Book:
        values = {k: v for k, v in row.items() if k in Book.model_fields and v is not None}
        return Book(**values)

    def _row_to_companion(self, row: Dict[str, Any]) -> Companion:
        values = {k: v for k, v in row.items() if k in Companion.model_fields and v is not None}
        return Companion(**values)

    def _row_to_session(self, row: Dict[str, Any]) -> ReadingSession:
        reflection = row.get("reflection_data") or {}
        return ReadingSession(
            id=row["id"],
            user_id=row["user_id"],
            book_id=row["book_id"],
            duration_seconds=row.get("duration_seconds") or 0,
            units_read=row.get("pages_read") or 0,
            reflection_data=ReflectionData(note=reflection.get("note", ""), prompt=reflection.get("prompt")),
            ink_gained=row.get("ink_gained") or 0,
            xp_gained=row.get("xp_gained") or 0,
            created_at=row["created_at"],
        )


def _first(rows: Any) -> Any:
    # functions returning a table come back as a list
    if isinstance(rows, list):
        return rows[0] if rows else None
    return rows


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
