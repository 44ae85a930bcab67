"""User flags kept under User/<user_id>."""
import logging
from typing import Optional

from eventpool.store.base import Store, join_path
from eventpool.store.retry import RetryPolicy

logger = logging.getLogger(__name__)

USER_ROOT = "User"


class UserDirectory:
    def __init__(self, store: Store, retry: Optional[RetryPolicy] = None):
        self.store = store
        self.retry = retry or RetryPolicy.from_settings()

    async def is_banned_from_organizing(self, user_id: str) -> bool:
        snapshot = await self.retry.call(self.store.get, join_path(USER_ROOT, user_id, "bannedFromOrganizer"))
        return snapshot.value is True

    async def set_banned_from_organizing(self, user_id: str, banned: bool) -> None:
        await self.retry.call(self.store.update, join_path(USER_ROOT, user_id), {"bannedFromOrganizer": banned})
        logger.info("Set bannedFromOrganizer=%s for user %s", banned, user_id)
