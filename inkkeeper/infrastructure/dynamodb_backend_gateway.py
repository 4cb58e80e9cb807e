"""DynamoDB implementation of BackendGateway."""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import aioboto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from ..domain.clock import Clock, utc_now
from ..domain.entities.book import Book, BookFormat, BookStatus
from ..domain.entities.companion import Companion, CompanionStatus
from ..domain.entities.profile import Profile, StreakFreezeResult
from ..domain.entities.reading_session import LogSessionRequest, ReadingSession, ReflectionData
from ..domain.entities.stats import ReadingSummary
from ..domain.errors import BackendError, NotFoundError
from ..domain.interfaces.backend_gateway import BackendGateway
from ..domain.rules.stats import summarize_sessions
from ..domain.rules.streaks import next_streak

logger = logging.getLogger(__name__)

USER_INDEX = "user_id-index"


class DynamoDBBackendGateway(BackendGateway):
    """DynamoDB backend for managing Inkkeeper data.

    Four tables are used, named ``{table_prefix}-profiles``, ``-books``,
    ``-companions`` and ``-sessions``. Profiles are keyed by ``user_id``,
    the others by ``id`` with a ``user_id-index`` GSI (sort key
    ``created_at`` on books and sessions).

    ``log_session_atomic`` is a single ``TransactWriteItems`` call. The
    profile update is conditioned on ``last_session_at`` not having moved
    since it was read, so two concurrent submissions cannot both extend
    the streak.
    """

    def __init__(self, table_prefix: str = "inkkeeper", region_name: str = "us-east-1", clock: Clock = utc_now):
        """Initialize the DynamoDB backend gateway.

        Args:
            table_prefix: Prefix of the four table names.
            region_name: AWS region name (default: us-east-1).
            clock: Source of the server-side timestamps.
        """
        self.table_prefix = table_prefix
        self.region_name = region_name
        self._clock = clock
        self._session = aioboto3.Session()
        self._serializer = TypeSerializer()

    @property
    def profiles_table(self) -> str:
        return f"{self.table_prefix}-profiles"

    @property
    def books_table(self) -> str:
        return f"{self.table_prefix}-books"

    @property
    def companions_table(self) -> str:
        return f"{self.table_prefix}-companions"

    @property
    def sessions_table(self) -> str:
        return f"{self.table_prefix}-sessions"

    # ===== Reads =====

    async def fetch_profile(self, user_id: str) -> Profile:
        """Retrieve a profile from DynamoDB.

        Raises:
            NotFoundError: If the profile is not found.
        """
        item = await self._get_item(self.profiles_table, {"user_id": user_id})
        if item is None:
            raise NotFoundError(f"Profile for user {user_id} not found")
        return self._item_to_profile(item)

    async def fetch_book(self, book_id: str) -> Book:
        item = await self._get_item(self.books_table, {"id": book_id})
        if item is None:
            raise NotFoundError(f"Book with id {book_id} not found")
        return self._item_to_book(item)

    async def fetch_companion(self, companion_id: str) -> Companion:
        item = await self._get_item(self.companions_table, {"id": companion_id})
        if item is None:
            raise NotFoundError(f"Companion with id {companion_id} not found")
        return self._item_to_companion(item)

    async def list_books(self, user_id: str) -> List[Book]:
        items = await self._query_by_user(self.books_table, user_id)
        return [self._item_to_book(item) for item in items]

    async def list_sessions(self, user_id: str, limit: Optional[int] = None) -> List[ReadingSession]:
        items = await self._query_by_user(self.sessions_table, user_id, limit=limit)
        return [self._item_to_session(item) for item in items]

    async def get_reading_summary(self, user_id: str, start_date: date, end_date: date) -> ReadingSummary:
        """Summarize from the user's sessions; DynamoDB has no server-side aggregation."""
        sessions = await self.list_sessions(user_id)
        return summarize_sessions(sessions, start_date, end_date)

    # ===== Writes =====

    async def log_session_atomic(self, request: LogSessionRequest) -> None:
        """Record the session and all of its side effects in one transaction.

        Raises:
            BackendError: If the transaction is cancelled or the call fails.
        """
        profile = await self.fetch_profile(request.user_id)
        now = self._clock()
        session = ReadingSession(
            user_id=request.user_id,
            book_id=request.book_id,
            duration_seconds=request.duration_seconds,
            units_read=request.units_read,
            reflection_data=request.reflection_data,
            ink_gained=request.ink_gained,
            xp_gained=request.xp_gained,
            created_at=now,
        )

        book_set = "SET current_unit = :unit"
        book_values: Dict[str, Any] = {":unit": request.new_book_unit, ":uid": request.user_id}
        book_names: Dict[str, str] = {}
        if request.new_book_status is not None:
            book_set += ", #status = :status"
            book_values[":status"] = request.new_book_status.value
            book_names["#status"] = "status"

        profile_values: Dict[str, Any] = {
            ":ink": request.ink_gained,
            ":now": now.isoformat(),
            ":streak": next_streak(profile.last_session_at, profile.current_streak, now),
        }
        if profile.last_session_at is None:
            profile_condition = "attribute_not_exists(last_session_at)"
        else:
            profile_condition = "last_session_at = :prev"
            profile_values[":prev"] = profile.last_session_at.isoformat()

        book_update: Dict[str, Any] = {
            "TableName": self.books_table,
            "Key": self._serialize({"id": request.book_id}),
            "UpdateExpression": book_set,
            "ConditionExpression": "user_id = :uid",
            "ExpressionAttributeValues": self._serialize(book_values),
        }
        if book_names:
            book_update["ExpressionAttributeNames"] = book_names

        transact_items = [
            {
                "Put": {
                    "TableName": self.sessions_table,
                    "Item": self._serialize(self._session_to_item(session)),
                    "ConditionExpression": "attribute_not_exists(id)",
                }
            },
            {"Update": book_update},
            {
                "Update": {
                    "TableName": self.companions_table,
                    "Key": self._serialize({"id": request.companion_id}),
                    "UpdateExpression": "ADD xp :xp",
                    "ConditionExpression": "user_id = :uid",
                    "ExpressionAttributeValues": self._serialize({":xp": request.xp_gained, ":uid": request.user_id}),
                }
            },
            {
                "Update": {
                    "TableName": self.profiles_table,
                    "Key": self._serialize({"user_id": request.user_id}),
                    "UpdateExpression": "SET last_session_at = :now, current_streak = :streak ADD ink_drops :ink",
                    "ConditionExpression": profile_condition,
                    "ExpressionAttributeValues": self._serialize(profile_values),
                }
            },
        ]

        try:
            async with self._session.client("dynamodb", region_name=self.region_name) as client:
                await client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            raise self._backend_error(e) from e

        logger.info(f"Logged session {session.id} for user {request.user_id}")

    async def use_streak_freeze(self, user_id: str) -> StreakFreezeResult:
        """Decrement the freeze count and stamp ``last_session_at`` if a freeze is left."""
        try:
            async with self._session.resource("dynamodb", region_name=self.region_name) as dynamodb:
                table = await dynamodb.Table(self.profiles_table)
                response = await table.update_item(
                    Key={"user_id": user_id},
                    UpdateExpression="SET last_session_at = :now ADD streak_freezes_available :minus_one",
                    ConditionExpression="streak_freezes_available > :zero",
                    ExpressionAttributeValues={":now": self._clock().isoformat(), ":minus_one": -1, ":zero": 0},
                    ReturnValues="UPDATED_NEW",
                )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return StreakFreezeResult(success=False, freezes_remaining=0)
            raise self._backend_error(e) from e

        remaining = int(response["Attributes"]["streak_freezes_available"])
        return StreakFreezeResult(success=True, freezes_remaining=remaining)

    async def reset_broken_streak(self, user_id: str) -> None:
        await self._update_profile(user_id, "SET current_streak = :zero", {":zero": 0})

    async def insert_book(self, book: Book) -> Book:
        stored = book.model_copy(update={"created_at": self._clock()})
        try:
            async with self._session.resource("dynamodb", region_name=self.region_name) as dynamodb:
                table = await dynamodb.Table(self.books_table)
                await table.put_item(Item=self._book_to_item(stored))
        except ClientError as e:
            raise self._backend_error(e) from e
        return stored

    async def set_active_book(self, user_id: str, book_id: str) -> None:
        await self._update_profile(user_id, "SET active_book_id = :book", {":book": book_id})

    async def update_shelf(self, user_id: str, book_ids: List[str], shelf_name: str) -> None:
        try:
            async with self._session.resource("dynamodb", region_name=self.region_name) as dynamodb:
                table = await dynamodb.Table(self.books_table)
                for book_id in book_ids:
                    await table.update_item(
                        Key={"id": book_id},
                        UpdateExpression="SET shelf_name = :shelf",
                        ConditionExpression="user_id = :uid",
                        ExpressionAttributeValues={":shelf": shelf_name, ":uid": user_id},
                    )
        except ClientError as e:
            raise self._backend_error(e) from e

    async def delete_user_account(self, user_id: str) -> None:
        """Delete every row the user owns, then the profile."""
        try:
            async with self._session.resource("dynamodb", region_name=self.region_name) as dynamodb:
                for table_name in (self.sessions_table, self.books_table, self.companions_table):
                    table = await dynamodb.Table(table_name)
                    items = await self._query_table(table, user_id)
                    async with table.batch_writer() as batch:
                        for item in items:
                            await batch.delete_item(Key={"id": item["id"]})
                profiles = await dynamodb.Table(self.profiles_table)
                await profiles.delete_item(Key={"user_id": user_id})
        except ClientError as e:
            raise self._backend_error(e) from e
        logger.info(f"Deleted account of user {user_id}")

    # ===== Helpers =====

    async def _get_item(self, table_name: str, key: Dict[str, str]) -> Optional[Dict[str, Any]]:
        try:
            async with self._session.resource("dynamodb", region_name=self.region_name) as dynamodb:
                table = await dynamodb.Table(table_name)
                response = await table.get_item(Key=key)
        except ClientError as e:
            raise self._backend_error(e) from e
        return response.get("Item")

    async def _query_by_user(self, table_name: str, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        try:
            async with self._session.resource("dynamodb", region_name=self.region_name) as dynamodb:
                table = await dynamodb.Table(table_name)
                return await self._query_table(table, user_id, limit=limit)
        except ClientError as e:
            raise self._backend_error(e) from e

    @staticmethod
    async def _query_table(table, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Query the user index newest first, following pagination until ``limit``."""
        kwargs: Dict[str, Any] = {
            "IndexName": USER_INDEX,
            "KeyConditionExpression": Key("user_id").eq(user_id),
            "ScanIndexForward": False,
        }
        items: List[Dict[str, Any]] = []
        while True:
            if limit is not None:
                kwargs["Limit"] = limit - len(items)
            response = await table.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key or (limit is not None and len(items) >= limit):
                return items
            kwargs["ExclusiveStartKey"] = last_key

    async def _update_profile(self, user_id: str, expression: str, values: Dict[str, Any]) -> None:
        try:
            async with self._session.resource("dynamodb", region_name=self.region_name) as dynamodb:
                table = await dynamodb.Table(self.profiles_table)
                await table.update_item(
                    Key={"user_id": user_id},
                    UpdateExpression=expression,
                    ConditionExpression="attribute_exists(user_id)",
                    ExpressionAttributeValues=values,
                )
        except ClientError as e:
            raise self._backend_error(e) from e

    def _serialize(self, values: Dict[str, Any]) -> Dict[str, Any]:
        return {k: self._serializer.serialize(v) for k, v in values.items()}

    @staticmethod
    def _backend_error(error: ClientError) -> BackendError:
        details = error.response.get("Error", {})
        return BackendError(details.get("Message", str(error)), code=details.get("Code"))

    # ===== Item mappers =====

    def _item_to_profile(self, item: Dict[str, Any]) -> Profile:
        return Profile(
            user_id=item["user_id"],
            email=item.get("email"),
            ink_drops=_int(item.get("ink_drops")),
            active_book_id=item.get("active_book_id"),
            active_companion_id=item.get("active_companion_id"),
            current_streak=_int(item.get("current_streak")),
            streak_freezes_available=_int(item.get("streak_freezes_available")),
            last_session_at=_datetime(item.get("last_session_at")),
            daily_goal_amount=_int(item.get("daily_goal_amount"), default=None),
            preferred_format=item.get("preferred_format"),
            timezone=item.get("timezone"),
        )

    def _book_to_item(self, book: Book) -> Dict[str, Any]:
        item = {
            "id": book.id,
            "user_id": book.user_id,
            "title": book.title,
            "author": book.author,
            "format": book.format.value,
            "current_unit": book.current_unit,
            "total_units": book.total_units,
            "status": book.status.value,
            "shelf_name": book.shelf_name,
            "cover_url": book.cover_url,
            "genre_type": book.genre_type,
            "created_at": book.created_at.isoformat(),
        }
        return {k: v for k, v in item.items() if v is not None}

    def _item_to_book(self, item: Dict[str, Any]) -> Book:
        return Book(
            id=item["id"],
            user_id=item["user_id"],
            title=item["title"],
            author=item.get("author") or "Unknown",
            format=BookFormat(item.get("format", "physical")),
            current_unit=_int(item.get("current_unit")),
            total_units=_int(item.get("total_units"), default=None),
            status=BookStatus(item.get("status", "active")),
            shelf_name=item.get("shelf_name"),
            cover_url=item.get("cover_url"),
            genre_type=item.get("genre_type"),
            created_at=_datetime(item.get("created_at")) or self._clock(),
        )

    def _item_to_companion(self, item: Dict[str, Any]) -> Companion:
        return Companion(
            id=item["id"],
            user_id=item["user_id"],
            nickname=item.get("nickname") or "Rusty",
            species=item.get("species", "fox"),
            xp=_int(item.get("xp")),
            status=CompanionStatus(item.get("status", "active")),
        )

    def _session_to_item(self, session: ReadingSession) -> Dict[str, Any]:
        reflection = {"note": session.reflection_data.note}
        if session.reflection_data.prompt is not None:
            reflection["prompt"] = session.reflection_data.prompt
        return {
            "id": session.id,
            "user_id": session.user_id,
            "book_id": session.book_id,
            "duration_seconds": session.duration_seconds,
            "pages_read": session.units_read,
            "reflection_data": reflection,
            "ink_gained": session.ink_gained,
            "xp_gained": session.xp_gained,
            "created_at": session.created_at.isoformat(),
        }

    def _item_to_session(self, item: Dict[str, Any]) -> ReadingSession:
        reflection = item.get("reflection_data") or {}
        return ReadingSession(
            id=item["id"],
            user_id=item["user_id"],
            book_id=item["book_id"],
            duration_seconds=_int(item.get("duration_seconds")),
            units_read=_int(item.get("pages_read")),
            reflection_data=ReflectionData(note=reflection.get("note", ""), prompt=reflection.get("prompt")),
            ink_gained=_int(item.get("ink_gained")),
            xp_gained=_int(item.get("xp_gained")),
            created_at=datetime.fromisoformat(item["created_at"]),
        )


def _int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    # the resource layer hands numbers back as Decimal
    if value is None:
        return default
    return int(value)


def _datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
