"""Per-visitor key-value storage for anonymous cart and wishlist state."""
from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Callable, TypeVar

import redis

from cartsync.core.config import DEFAULT_LOCAL_TTL_SECONDS
from cartsync.core.exceptions import MalformedLocalData
from cartsync.domain.entities import CartLine, PendingAction, WishlistLine

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LocalStore:
    """Cart and wishlist persisted in Redis per visitor, with in-memory fallback.

    Reads never raise: absent or malformed payloads read as empty. Writes are
    best-effort; a Redis failure switches the instance to memory mode.
    """

    CART_KEY = "cart"
    WISHLIST_KEY = "wishlist"
    PENDING_KEY = "pending_action"

    def __init__(
        self,
        visitor_id: str,
        redis_url: str | None = None,
        ttl_seconds: int = DEFAULT_LOCAL_TTL_SECONDS,
    ):
        if not visitor_id:
            raise ValueError("visitor_id is required for local storage")
        self.visitor_id = str(visitor_id)
        self.ttl_seconds = int(ttl_seconds)
        self._redis_url = redis_url or os.getenv("REDIS_URL")
        self._client = self._init_client()
        self._memory: dict[str, str] = {}

    def _init_client(self):
        if not self._redis_url:
            logger.warning("REDIS_URL is not set; local store uses in-memory fallback")
            return None

        try:
            client = redis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            client.ping()
            logger.info("Redis local store enabled for visitor %s", self.visitor_id)
            return client
        except Exception as exc:
            logger.warning("Redis local store init failed, fallback to in-memory: %s", exc)
            return None

    def _switch_to_memory_fallback(self, reason: Exception | str) -> None:
        logger.warning("Redis local store fallback to memory mode: %s", reason)
        self._client = None

    @property
    def is_persistent(self) -> bool:
        return self._client is not None

    def _key(self, name: str) -> str:
        return f"{name}:{self.visitor_id}"

    def _read_raw(self, name: str) -> str | None:
        key = self._key(name)
        if self._client:
            try:
                return self._client.get(key)
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        return self._memory.get(key)

    def _write_raw(self, name: str, value: str | None) -> None:
        key = self._key(name)
        if self._client:
            try:
                if value is None:
                    self._client.delete(key)
                else:
                    self._client.setex(key, self.ttl_seconds, value)
                return
            except Exception as exc:
                self._switch_to_memory_fallback(exc)
        if value is None:
            self._memory.pop(key, None)
        else:
            self._memory[key] = value

    def _load_list(self, name: str, factory: Callable[[dict[str, Any]], T]) -> list[T]:
        raw = self._read_raw(name)
        if not raw:
            return []
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("%s", MalformedLocalData(self._key(name), str(exc)))
            return []
        if not isinstance(payload, list):
            logger.warning("%s", MalformedLocalData(self._key(name), "payload is not a list"))
            return []

        items: list[T] = []
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            try:
                items.append(factory(entry))
            except Exception as exc:
                logger.warning("Skipping malformed entry under %s: %s", self._key(name), exc)
        return items

    def _save_list(self, name: str, items: list[Any]) -> None:
        if not items:
            self._write_raw(name, None)
            return
        try:
            serialized = json.dumps([item.to_dict() for item in items], ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            logger.error("Failed to serialize %s for visitor %s: %s", name, self.visitor_id, exc)
            return
        self._write_raw(name, serialized)

    def load_cart(self) -> list[CartLine]:
        lines = self._load_list(self.CART_KEY, CartLine.from_dict)
        return _dedupe(lines)

    def save_cart(self, lines: list[CartLine]) -> None:
        self._save_list(self.CART_KEY, _dedupe(lines))

    def clear_cart(self) -> None:
        self._write_raw(self.CART_KEY, None)

    def load_wishlist(self) -> list[WishlistLine]:
        lines = self._load_list(self.WISHLIST_KEY, WishlistLine.from_dict)
        return _dedupe(lines)

    def save_wishlist(self, lines: list[WishlistLine]) -> None:
        self._save_list(self.WISHLIST_KEY, _dedupe(lines))

    def clear_wishlist(self) -> None:
        self._write_raw(self.WISHLIST_KEY, None)

    def load_pending_action(self) -> PendingAction | None:
        raw = self._read_raw(self.PENDING_KEY)
        if not raw:
            return None
        try:
            return PendingAction.from_dict(json.loads(raw))
        except Exception as exc:
            logger.warning("Discarding malformed pending action for %s: %s", self.visitor_id, exc)
            self._write_raw(self.PENDING_KEY, None)
            return None

    def save_pending_action(self, action: PendingAction) -> None:
        payload = action.to_dict()
        payload["saved_at"] = int(time.time())
        self._write_raw(self.PENDING_KEY, json.dumps(payload, ensure_ascii=False))

    def clear_pending_action(self) -> None:
        self._write_raw(self.PENDING_KEY, None)


def _dedupe(lines: list[T]) -> list[T]:
    """Keep the first line per uniqueness key."""
    seen: set = set()
    unique: list[T] = []
    for line in lines:
        key = line.key
        if key in seen:
            continue
        seen.add(key)
        unique.append(line)
    return unique
