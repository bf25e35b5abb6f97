"""Cache keys, TTLs, and invalidation for derived rate card results.

Key families:
- ``rate_card:{catalog_id}``: owner-facing catalog projection
- ``user_rate_cards:{owner_id}:{status}:{page}:{limit}``: owner list pages,
  partitioned by status (``all`` for unfiltered)
- ``public_rate_card:{public_id}``: public projection of a published catalog
- ``advisory:{fingerprint}``: sanitized advisory output for an exact input

Only committed mutations may invalidate, and invalidation always runs after
the commit.  Each invalidation also bumps a generation counter for the
catalog, its owner and its public id.  A reader takes a token before loading
from the database and hands it back to the matching ``put_*``; the put is
skipped when an invalidation ran in between, so a value superseded while it
was being read is never cached.  Advisory entries expire by TTL only; their key already encodes
the input that produced them.
"""

from __future__ import annotations

import hashlib
import json
import threading
from typing import TYPE_CHECKING, Any

import structlog

from ratecard.cache.backend import CacheBackend
from ratecard.domain.models import Catalog, CatalogPage, CreatorMetrics

if TYPE_CHECKING:
    from ratecard.advisory.models import AdvisorySuggestion

logger = structlog.get_logger()

CATALOG_PREFIX = "rate_card:"
LIST_PREFIX = "user_rate_cards:"
PUBLIC_PREFIX = "public_rate_card:"
ADVISORY_PREFIX = "advisory:"

LIST_STATUSES = ("all", "draft", "active", "archived")


def metrics_fingerprint(metrics: CreatorMetrics, season: str = "") -> str:
    """Return a stable hash of normalized metrics plus the season label.

    Platform order and language order/case do not change the fingerprint.
    """
    data = metrics.model_dump(mode="json")
    data["platforms"] = sorted(data["platforms"], key=lambda p: p["platform"])
    data["languages"] = sorted({lang.strip().lower() for lang in data["languages"]})
    data["season"] = season
    payload = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class CacheCoordinator:
    """Typed access to the cache for every derived rate card result.

    Args:
        backend: The cache capability to store entries in.
        advisory_ttl: Seconds an advisory result stays valid.
        catalog_ttl: Seconds a catalog projection stays valid.
        list_ttl: Seconds an owner list page stays valid.
        public_ttl: Seconds a public projection stays valid.
    """

    def __init__(
        self,
        backend: CacheBackend,
        *,
        advisory_ttl: float = 3600,
        catalog_ttl: float = 600,
        list_ttl: float = 300,
        public_ttl: float = 1800,
    ) -> None:
        self._backend = backend
        self._advisory_ttl = advisory_ttl
        self._catalog_ttl = catalog_ttl
        self._list_ttl = list_ttl
        self._public_ttl = public_ttl
        self._lock = threading.Lock()
        self._generations: dict[str, int] = {}

    # -- keys ---------------------------------------------------------------

    @staticmethod
    def catalog_key(catalog_id: str) -> str:
        return f"{CATALOG_PREFIX}{catalog_id}"

    @staticmethod
    def list_prefix(owner_id: str, status: str) -> str:
        return f"{LIST_PREFIX}{owner_id}:{status}:"

    @classmethod
    def list_key(cls, owner_id: str, status: str, page: int, limit: int) -> str:
        return f"{cls.list_prefix(owner_id, status)}{page}:{limit}"

    @staticmethod
    def public_key(public_id: str) -> str:
        return f"{PUBLIC_PREFIX}{public_id}"

    @staticmethod
    def advisory_key(fingerprint: str) -> str:
        return f"{ADVISORY_PREFIX}{fingerprint}"

    # -- advisory -----------------------------------------------------------

    def get_advisory(self, fingerprint: str) -> AdvisorySuggestion | None:
        return self._backend.get(self.advisory_key(fingerprint))

    def put_advisory(self, fingerprint: str, suggestion: AdvisorySuggestion) -> None:
        self._backend.set(self.advisory_key(fingerprint), suggestion, self._advisory_ttl)

    # -- catalogs -----------------------------------------------------------

    def get_catalog(self, catalog_id: str) -> Catalog | None:
        return self._backend.get(self.catalog_key(catalog_id))

    def catalog_token(self, catalog_id: str) -> int:
        return self._generation(self.catalog_key(catalog_id))

    def put_catalog(self, catalog: Catalog, token: int | None = None) -> bool:
        key = self.catalog_key(catalog.id)
        return self._put(key, key, token, catalog, self._catalog_ttl)

    def get_list(self, owner_id: str, status: str, page: int, limit: int) -> CatalogPage | None:
        return self._backend.get(self.list_key(owner_id, status, page, limit))

    def list_token(self, owner_id: str) -> int:
        return self._generation(self._owner_generation_key(owner_id))

    def put_list(
        self,
        owner_id: str,
        status: str,
        page: int,
        limit: int,
        result: CatalogPage,
        token: int | None = None,
    ) -> bool:
        return self._put(
            self._owner_generation_key(owner_id),
            self.list_key(owner_id, status, page, limit),
            token,
            result,
            self._list_ttl,
        )

    def get_public(self, public_id: str) -> dict[str, Any] | None:
        return self._backend.get(self.public_key(public_id))

    def public_token(self, public_id: str) -> int:
        return self._generation(self.public_key(public_id))

    def put_public(
        self, public_id: str, projection: dict[str, Any], token: int | None = None
    ) -> bool:
        key = self.public_key(public_id)
        return self._put(key, key, token, projection, self._public_ttl)

    # -- invalidation -------------------------------------------------------

    def invalidate_owner_lists(self, owner_id: str) -> None:
        with self._lock:
            self._bump(self._owner_generation_key(owner_id))
            for status in LIST_STATUSES:
                self._backend.delete_prefix(self.list_prefix(owner_id, status))

    def invalidate_catalog(self, catalog: Catalog, previous_public_id: str | None = None) -> None:
        """Drop every entry derived from *catalog* after a committed mutation.

        Args:
            catalog: The catalog as committed.
            previous_public_id: Public id held before the mutation, when it
                may differ from the committed one.
        """
        with self._lock:
            key = self.catalog_key(catalog.id)
            self._bump(key)
            self._backend.delete(key)
            for public_id in {catalog.sharing.public_id, previous_public_id} - {None}:
                key = self.public_key(public_id)
                self._bump(key)
                self._backend.delete(key)
        self.invalidate_owner_lists(catalog.owner_id)
        logger.debug("cache_invalidated", catalog_id=catalog.id, owner_id=catalog.owner_id)

    # -- generations --------------------------------------------------------

    @staticmethod
    def _owner_generation_key(owner_id: str) -> str:
        return f"{LIST_PREFIX}{owner_id}:"

    def _generation(self, key: str) -> int:
        with self._lock:
            return self._generations.get(key, 0)

    def _bump(self, key: str) -> None:
        self._generations[key] = self._generations.get(key, 0) + 1

    def _put(
        self, generation_key: str, key: str, token: int | None, value: Any, ttl: float
    ) -> bool:
        """Store *value* unless *key* was invalidated after *token* was taken."""
        with self._lock:
            if token is not None and self._generations.get(generation_key, 0) != token:
                logger.debug("cache_put_skipped", key=key)
                return False
            self._backend.set(key, value, ttl)
            return True
