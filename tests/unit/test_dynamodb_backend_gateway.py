"""Tests for the DynamoDB backend gateway."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from inkkeeper.domain.entities import BookFormat, BookStatus, LogSessionRequest, ReflectionData
from inkkeeper.domain.errors import BackendError, NotFoundError
from inkkeeper.infrastructure.dynamodb_backend_gateway import DynamoDBBackendGateway

NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_dynamodb_table():
    """Create a mock DynamoDB table."""
    mock_table = AsyncMock()
    return mock_table


@pytest.fixture
def mock_dynamodb_resource(mock_dynamodb_table):
    """Create a mock DynamoDB resource."""
    mock_resource = MagicMock()
    mock_resource.Table = AsyncMock(return_value=mock_dynamodb_table)
    return mock_resource


@pytest.fixture
def mock_dynamodb_client():
    """Create a mock low-level DynamoDB client."""
    return AsyncMock()


@pytest.fixture
def mock_aioboto3_session(mock_dynamodb_resource, mock_dynamodb_client):
    """Create a mock aioboto3 session."""
    with patch("inkkeeper.infrastructure.dynamodb_backend_gateway.aioboto3.Session") as mock_session_class:
        mock_session_instance = MagicMock()
        mock_session_class.return_value = mock_session_instance

        # Setup async context managers for resource and client
        mock_session_instance.resource.return_value.__aenter__ = AsyncMock(return_value=mock_dynamodb_resource)
        mock_session_instance.resource.return_value.__aexit__ = AsyncMock(return_value=None)
        mock_session_instance.client.return_value.__aenter__ = AsyncMock(return_value=mock_dynamodb_client)
        mock_session_instance.client.return_value.__aexit__ = AsyncMock(return_value=None)

        yield mock_session_instance


@pytest.fixture
def gateway(mock_aioboto3_session):
    """Create a DynamoDB backend gateway instance."""
    return DynamoDBBackendGateway(table_prefix="test", region_name="us-east-1", clock=lambda: NOW)


@pytest.fixture
def profile_item():
    return {
        "user_id": "user-1",
        "ink_drops": Decimal("40"),
        "active_book_id": "book-1",
        "active_companion_id": "companion-1",
        "current_streak": Decimal("2"),
        "streak_freezes_available": Decimal("1"),
        "last_session_at": "2026-03-09T18:00:00+00:00",
    }


@pytest.fixture
def book_item():
    return {
        "id": "book-1",
        "user_id": "user-1",
        "title": "Dune",
        "format": "audio",
        "current_unit": Decimal("45"),
        "total_units": Decimal("1260"),
        "status": "active",
        "created_at": "2026-03-01T10:00:00+00:00",
    }


def _request(**overrides) -> LogSessionRequest:
    values = dict(
        user_id="user-1",
        book_id="book-1",
        companion_id="companion-1",
        duration_seconds=600,
        units_read=10,
        reflection_data=ReflectionData(note="Good chapter"),
        ink_gained=10,
        xp_gained=50,
        new_book_unit=55,
    )
    values.update(overrides)
    return LogSessionRequest(**values)


def _client_error(code: str, message: str, operation: str = "TransactWriteItems") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class TestDynamoDBBackendGateway:
    """Test cases for DynamoDBBackendGateway."""

    def test_init(self, gateway):
        """Test gateway initialization."""
        assert gateway.profiles_table == "test-profiles"
        assert gateway.books_table == "test-books"
        assert gateway.companions_table == "test-companions"
        assert gateway.sessions_table == "test-sessions"
        assert gateway.region_name == "us-east-1"

    @pytest.mark.asyncio
    async def test_fetch_profile_converts_decimals(self, gateway, mock_dynamodb_table, profile_item):
        mock_dynamodb_table.get_item.return_value = {"Item": profile_item}

        profile = await gateway.fetch_profile("user-1")

        mock_dynamodb_table.get_item.assert_called_once_with(Key={"user_id": "user-1"})
        assert profile.ink_drops == 40
        assert profile.current_streak == 2
        assert profile.last_session_at == datetime(2026, 3, 9, 18, 0, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_fetch_book(self, gateway, mock_dynamodb_table, book_item):
        mock_dynamodb_table.get_item.return_value = {"Item": book_item}

        book = await gateway.fetch_book("book-1")

        assert book.format == BookFormat.AUDIO
        assert book.current_unit == 45
        assert book.total_units == 1260
        assert book.author == "Unknown"

    @pytest.mark.asyncio
    async def test_fetch_missing_book(self, gateway, mock_dynamodb_table):
        mock_dynamodb_table.get_item.return_value = {}

        with pytest.raises(NotFoundError, match="book-404"):
            await gateway.fetch_book("book-404")

    @pytest.mark.asyncio
    async def test_list_sessions_queries_user_index(self, gateway, mock_dynamodb_table):
        mock_dynamodb_table.query.return_value = {
            "Items": [
                {
                    "id": "s1",
                    "user_id": "user-1",
                    "book_id": "book-1",
                    "duration_seconds": Decimal("600"),
                    "pages_read": Decimal("12"),
                    "reflection_data": {"note": "Nice"},
                    "created_at": "2026-03-09T18:00:00+00:00",
                }
            ]
        }

        sessions = await gateway.list_sessions("user-1", limit=5)

        kwargs = mock_dynamodb_table.query.call_args.kwargs
        assert kwargs["IndexName"] == "user_id-index"
        assert kwargs["ScanIndexForward"] is False
        assert kwargs["Limit"] == 5
        assert sessions[0].units_read == 12
        assert sessions[0].reflection_data.note == "Nice"

    @pytest.mark.asyncio
    async def test_log_session_is_one_transaction(
        self, gateway, mock_dynamodb_table, mock_dynamodb_client, profile_item
    ):
        mock_dynamodb_table.get_item.return_value = {"Item": profile_item}

        await gateway.log_session_atomic(_request(new_book_status=BookStatus.FINISHED))

        mock_dynamodb_client.transact_write_items.assert_awaited_once()
        items = mock_dynamodb_client.transact_write_items.call_args.kwargs["TransactItems"]
        assert len(items) == 4

        put = items[0]["Put"]
        assert put["TableName"] == "test-sessions"
        assert put["Item"]["duration_seconds"] == {"N": "600"}
        assert put["Item"]["reflection_data"] == {"M": {"note": {"S": "Good chapter"}}}

        book_update = items[1]["Update"]
        assert book_update["TableName"] == "test-books"
        assert book_update["ExpressionAttributeValues"][":unit"] == {"N": "55"}
        assert book_update["ExpressionAttributeValues"][":status"] == {"S": "finished"}
        assert book_update["ExpressionAttributeNames"] == {"#status": "status"}

        companion_update = items[2]["Update"]
        assert companion_update["ExpressionAttributeValues"][":xp"] == {"N": "50"}

        profile_update = items[3]["Update"]
        assert profile_update["ConditionExpression"] == "last_session_at = :prev"
        values = profile_update["ExpressionAttributeValues"]
        assert values[":prev"] == {"S": "2026-03-09T18:00:00+00:00"}
        assert values[":ink"] == {"N": "10"}
        assert values[":streak"] == {"N": "3"}
        assert values[":now"] == {"S": NOW.isoformat()}

    @pytest.mark.asyncio
    async def test_first_session_requires_no_previous_timestamp(
        self, gateway, mock_dynamodb_table, mock_dynamodb_client, profile_item
    ):
        del profile_item["last_session_at"]
        profile_item["current_streak"] = Decimal("0")
        mock_dynamodb_table.get_item.return_value = {"Item": profile_item}

        await gateway.log_session_atomic(_request())

        items = mock_dynamodb_client.transact_write_items.call_args.kwargs["TransactItems"]
        profile_update = items[3]["Update"]
        assert profile_update["ConditionExpression"] == "attribute_not_exists(last_session_at)"
        assert ":prev" not in profile_update["ExpressionAttributeValues"]
        assert profile_update["ExpressionAttributeValues"][":streak"] == {"N": "1"}
        assert "ExpressionAttributeNames" not in items[1]["Update"]

    @pytest.mark.asyncio
    async def test_cancelled_transaction_is_backend_error(
        self, gateway, mock_dynamodb_table, mock_dynamodb_client, profile_item
    ):
        mock_dynamodb_table.get_item.return_value = {"Item": profile_item}
        mock_dynamodb_client.transact_write_items.side_effect = _client_error(
            "TransactionCanceledException",
            "Transaction cancelled, please refer cancellation reasons for specific reasons [None, None, None, ConditionalCheckFailed]",
        )

        with pytest.raises(BackendError) as exc_info:
            await gateway.log_session_atomic(_request())

        assert exc_info.value.code == "TransactionCanceledException"
        assert exc_info.value.message.startswith("Transaction cancelled")

    @pytest.mark.asyncio
    async def test_use_streak_freeze(self, gateway, mock_dynamodb_table):
        mock_dynamodb_table.update_item.return_value = {"Attributes": {"streak_freezes_available": Decimal("0")}}

        result = await gateway.use_streak_freeze("user-1")

        assert result.success is True
        assert result.freezes_remaining == 0
        kwargs = mock_dynamodb_table.update_item.call_args.kwargs
        assert kwargs["ConditionExpression"] == "streak_freezes_available > :zero"

    @pytest.mark.asyncio
    async def test_use_streak_freeze_when_none_left(self, gateway, mock_dynamodb_table):
        mock_dynamodb_table.update_item.side_effect = _client_error(
            "ConditionalCheckFailedException", "The conditional request failed", "UpdateItem"
        )

        result = await gateway.use_streak_freeze("user-1")

        assert result.success is False

    @pytest.mark.asyncio
    async def test_reset_broken_streak(self, gateway, mock_dynamodb_table):
        await gateway.reset_broken_streak("user-1")

        kwargs = mock_dynamodb_table.update_item.call_args.kwargs
        assert kwargs["Key"] == {"user_id": "user-1"}
        assert kwargs["UpdateExpression"] == "SET current_streak = :zero"

    @pytest.mark.asyncio
    async def test_update_shelf_updates_each_book(self, gateway, mock_dynamodb_table):
        await gateway.update_shelf("user-1", ["a", "b"], "Favourites")

        assert mock_dynamodb_table.update_item.await_count == 2
        keys = [c.kwargs["Key"] for c in mock_dynamodb_table.update_item.call_args_list]
        assert keys == [{"id": "a"}, {"id": "b"}]
