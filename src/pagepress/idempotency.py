"""Idempotency cache for publish requests.

A caller-supplied idempotency key maps to the response of the first
request that used it.  Keys are stored only as SHA-256 digests.

The lifecycle of a key is::

    (absent) --reserve--> pending --store--> done --(ttl)--> (absent)
                             |
                             +--release--> (absent)

:meth:`IdempotencyCache.reserve` is an atomic insert-if-absent on the
metadata store, so two concurrent requests with the same key cannot both
proceed to a host write.  Pending reservations carry a short TTL of their
own, so a crashed request only blocks retries for that long.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any

from pagepress.config import PagepressConfig
from pagepress.host.base import MetaStore
from pagepress.models import IdempotencyEntry
from pagepress.observability import get_logger
from pagepress.utils.hashing import sha256_hex

log = get_logger("pagepress.idempotency")

SCOPE = "idempotency"

_PENDING = "pending"
_DONE = "done"


class IdempotencyCache:
    """Cache of publish responses keyed by idempotency key.

    Parameters
    ----------
    meta:
        Backing store.  Atomic stores give exactly-once reservations;
        non-atomic ones degrade to last-write-wins.
    config:
        Supplies the entry and reservation TTLs.
    clock:
        Wall-clock source used for ``expires_at``.
    """

    def __init__(
        self,
        meta: MetaStore,
        config: PagepressConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._meta = meta
        self._ttl = config.idempotency_ttl_seconds
        self._reservation_ttl = config.idempotency_reservation_ttl_seconds
        self._clock = clock

    @staticmethod
    def key_hash(key: str) -> str:
        return sha256_hex(key)

    def entry(self, key: str) -> IdempotencyEntry | None:
        """Return the live entry for *key*, pending or done."""
        key_hash = self.key_hash(key)
        raw = self._meta.get(SCOPE, key_hash)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            log.warning(
                "Discarding unreadable idempotency entry",
                extra={"extra_fields": {"op": "idempotency_lookup", "key_hash": key_hash}},
            )
            self._meta.delete(SCOPE, key_hash)
            return None
        return IdempotencyEntry(
            key_hash=key_hash,
            state=data.get("state", _DONE),
            response=data.get("response"),
            expires_at=float(data.get("expires_at", 0.0)),
        )

    def lookup(self, key: str) -> dict[str, Any] | None:
        """Return the cached response for *key*, or ``None``.

        Pending reservations are not hits.
        """
        entry = self.entry(key)
        if entry is None or entry.pending or entry.response is None:
            return None
        return dict(entry.response)

    def reserve(self, key: str) -> bool:
        """Claim *key* for the calling request.

        Returns ``False`` if another request already holds or completed it.
        """
        payload = json.dumps({
            "state": _PENDING,
            "response": None,
            "expires_at": self._clock() + self._reservation_ttl,
        })
        if not self._meta.atomic:
            log.debug(
                "Metadata store is not atomic; idempotency reservation is best-effort",
                extra={"extra_fields": {"op": "idempotency_reserve"}},
            )
        return self._meta.add(SCOPE, self.key_hash(key), payload, ttl=self._reservation_ttl)

    def store(self, key: str, response: dict[str, Any], ttl: float | None = None) -> None:
        """Record the final *response* for *key*, replacing any reservation."""
        ttl = self._ttl if ttl is None else ttl
        payload = json.dumps({
            "state": _DONE,
            "response": response,
            "expires_at": self._clock() + ttl,
        }, default=str)
        self._meta.set(SCOPE, self.key_hash(key), payload, ttl=ttl)

    def release(self, key: str) -> None:
        """Drop a pending reservation so the key can be retried.

        Completed entries are left alone.
        """
        entry = self.entry(key)
        if entry is not None and entry.pending:
            self._meta.delete(SCOPE, entry.key_hash)
