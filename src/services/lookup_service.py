"""
Lookup provider for the two reference tables.

Builds an immutable snapshot (sub-category -> product, corporate name ->
account tier) that is passed explicitly to enrichment. Keys are trimmed and
lower-cased; the last row wins when two rows normalize to the same key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from repositories.schema import corporate_accounts, subcategory_products
from utils.cache_service import TTLCache
from utils.error_handling import LookupLoadError
from utils.logging_config import get_logger
from utils.normalizers import normalize_key

logger = get_logger(__name__)

SNAPSHOT_KEY = "lookups"


def build_lookup_map(rows: Iterable[Tuple[Any, Any]]) -> Mapping[str, str]:
    """Normalize keys and freeze the result; non-string or blank keys are skipped."""
    lookup: Dict[str, str] = {}
    for raw_key, value in rows:
        key = normalize_key(raw_key)
        if not key:
            continue
        lookup[key] = value or ""
    return MappingProxyType(lookup)


@dataclass(frozen=True)
class LookupSnapshot:
    """Read-only reference data for one pipeline run."""

    products: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    account_tiers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def product_for(self, sub_category: Any) -> Optional[str]:
        return self.products.get(normalize_key(sub_category)) or None

    def tier_for(self, company_name: Any) -> Optional[str]:
        return self.account_tiers.get(normalize_key(company_name)) or None


class LookupProvider:
    """Loads lookup snapshots from the database."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def load(self) -> LookupSnapshot:
        """Read both tables; any failure is fatal for the run."""
        try:
            with self.engine.connect() as conn:
                product_rows = conn.execute(
                    select(subcategory_products.c.sub_category, subcategory_products.c.product)
                    .order_by(subcategory_products.c.id)
                ).all()
                tier_rows = conn.execute(
                    select(corporate_accounts.c.corporate_name, corporate_accounts.c.account_tier)
                    .order_by(corporate_accounts.c.id)
                ).all()
        except SQLAlchemyError as exc:
            raise LookupLoadError(f"Failed to load lookup tables: {exc}") from exc

        snapshot = LookupSnapshot(
            products=build_lookup_map(product_rows),
            account_tiers=build_lookup_map(tier_rows),
        )
        logger.info(
            "Lookup tables loaded",
            extra={
                "products": len(snapshot.products),
                "account_tiers": len(snapshot.account_tiers),
            },
        )
        return snapshot


class CachedLookupProvider:
    """Keeps one snapshot per process and reloads it on a coarse interval."""

    def __init__(self, provider: LookupProvider, refresh_seconds: float = 900):
        self.provider = provider
        self.cache = TTLCache(ttl_seconds=refresh_seconds)

    def current(self) -> LookupSnapshot:
        return self.cache.get_or_load(SNAPSHOT_KEY, self.provider.load)
