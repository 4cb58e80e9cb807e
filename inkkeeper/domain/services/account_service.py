"""Account lifecycle operations."""

import logging

from ..entities.session_context import SessionContext
from ..interfaces.backend_gateway import BackendGateway

logger = logging.getLogger(__name__)


class AccountService:
    """Account operations delegated to the backend."""

    def __init__(self, backend: BackendGateway):
        self.backend = backend

    async def delete_account(self, context: SessionContext) -> None:
        """Delete the user's account and all of their data."""
        logger.info(f"Deleting account of user {context.user_id}")
        await self.backend.delete_user_account(context.user_id)
