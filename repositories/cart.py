import logging

from pydantic import ValidationError

import config
from models.cart import CartDTO
from utils.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class CartRepository:
    """
    Cart documents in the key-value store, one JSON blob per session under
    ``cart:{session_key}`` with a sliding TTL.

    Writes are plain read-modify-write with no locking: two concurrent
    requests for the same session can overwrite each other (last writer wins).
    """

    KEY_PREFIX = "cart"

    def __init__(self, store: KeyValueStore, ttl_seconds: int | None = None):
        self.store = store
        self.ttl_seconds = ttl_seconds or config.CART_TTL_SECONDS

    @classmethod
    def key(cls, session_key: str) -> str:
        return f"{cls.KEY_PREFIX}:{session_key}"

    async def get(self, session_key: str) -> CartDTO | None:
        raw = await self.store.get(self.key(session_key))
        if raw is None:
            return None
        try:
            return CartDTO.model_validate_json(raw)
        except ValidationError as e:
            # Unreadable document (schema change, manual edit): drop it rather than fail every request
            logger.warning(f"Discarding malformed cart document for session {session_key[:8]}...: {e.error_count()} errors")
            await self.store.delete(self.key(session_key))
            return None

    async def save(self, cart: CartDTO) -> None:
        await self.store.set(self.key(cart.session_key), cart.model_dump_json(), self.ttl_seconds)

    async def touch(self, session_key: str) -> bool:
        return await self.store.expire(self.key(session_key), self.ttl_seconds)

    async def delete(self, session_key: str) -> bool:
        return await self.store.delete(self.key(session_key))
