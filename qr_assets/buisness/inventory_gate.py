"""
Inventory Gate
Keeps a pool of unregistered QR assets available for printing and shipping.

Replenishment is level-triggered rather than exactly-once: two instances that
both observe low stock will both refill. That over-provisions, which is
acceptable; the insert-skip-duplicates primitive keeps tokens unique.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from qr_assets.buisness.uniqueness_resolver import UniquenessResolver
from qr_assets.data.asset_store import AssetStore
from qr_assets.data.qr_asset import QRAsset, QRAssetStatus, utcnow
from qr_assets.errors import ExhaustedRetries
from qr_assets.logger import get_logger

logger = get_logger("qr_assets.buisness.inventory_gate")

DEFAULT_LOW_WATER_MARK = 30
DEFAULT_REPLENISH_COUNT = 100
ALLOCATION_ATTEMPTS = 2


@dataclass(frozen=True)
class BatchResult:
    batch_id: str
    created_count: int
    tokens: List[str] = field(default_factory=list)

    @property
    def sample_tokens(self) -> List[str]:
        return self.tokens[:5]


@dataclass(frozen=True)
class InventoryReport:
    available_before: int
    available_after: int
    created: int
    batch_id: Optional[str] = None

    @property
    def replenished(self) -> bool:
        return self.created > 0


class InventoryGate:
    """Reports available stock and refills it through the UniquenessResolver"""

    def __init__(self, store: AssetStore, resolver: UniquenessResolver):
        self.store = store
        self.resolver = resolver

    def available_count(self) -> int:
        """UNREGISTERED assets that are not reserved for an order"""
        return self.store.count_by_status(QRAssetStatus.UNREGISTERED, unreserved_only=True)

    def create_batch(self, count: int, batch_id: Optional[str] = None) -> BatchResult:
        """
        Create `count` new UNREGISTERED assets sharing one batch id.

        Tokens skipped by the store as duplicates (a concurrent writer won the
        race) are topped up with fresh tokens, bounded by the resolver's
        attempt count.

        Raises:
            ExhaustedRetries: If `count` rows could not be inserted within the bound
        """
        batch_id = batch_id or str(uuid.uuid4())
        created_tokens: List[str] = []
        created = 0
        rounds = 0

        while created < count and rounds < self.resolver.max_attempts:
            tokens = self.resolver.generate_unique_tokens(count - created)
            inserted = self.store.insert_many(
                [{'token': token, 'batch_id': batch_id} for token in tokens],
                skip_duplicates=True,
            )
            if inserted < len(tokens):
                # Keep only the rows that landed under this batch
                landed = self.store.find_tokens_in_batch(batch_id, tokens)
                tokens = [token for token in tokens if token in landed]
            created_tokens.extend(tokens)
            created += inserted
            rounds += 1

        if created < count:
            logger.error(f"Batch {batch_id} short by {count - created} asset(s) after {rounds} insert round(s)")
            raise ExhaustedRetries(
                f"Created {created} of {count} QR assets for batch {batch_id} after {rounds} insert rounds",
                requested=count,
                obtained=created,
                attempts=rounds,
            )

        logger.info(f"Created {created} QR assets in batch {batch_id}")
        return BatchResult(batch_id=batch_id, created_count=created, tokens=created_tokens)

    def ensure_inventory(
        self,
        low_water_mark: int = DEFAULT_LOW_WATER_MARK,
        replenish_count: int = DEFAULT_REPLENISH_COUNT,
    ) -> InventoryReport:
        """
        Replenish when available stock is below low_water_mark, otherwise do nothing.

        Returns:
            InventoryReport: Stock before and after, and how many assets this call created
        """
        available_before = self.available_count()
        if available_before >= low_water_mark:
            logger.debug(f"Inventory sufficient: {available_before} available (low water {low_water_mark})")
            return InventoryReport(available_before, available_before, 0)

        logger.info(
            f"Inventory low: {available_before} available (low water {low_water_mark}), "
            f"replenishing {replenish_count}"
        )
        batch = self.create_batch(replenish_count, batch_id=f"replenish-{utcnow().isoformat()}Z")
        available_after = self.available_count()
        return InventoryReport(available_before, available_after, batch.created_count, batch.batch_id)

    def allocate_one(
        self,
        low_water_mark: int = DEFAULT_LOW_WATER_MARK,
        replenish_count: int = DEFAULT_REPLENISH_COUNT,
    ) -> QRAsset:
        """
        Claim one unregistered, unreserved asset by stamping a fresh allocation id on it.

        Raises:
            ExhaustedRetries: If no asset could be claimed after replenishing and retrying
        """
        self.ensure_inventory(low_water_mark, replenish_count)
        allocation_id = str(uuid.uuid4())

        for attempt in range(ALLOCATION_ATTEMPTS):
            candidate = self.store.find_oldest_available()
            if candidate is not None and self.store.reserve_if_unreserved(candidate.id, allocation_id):
                asset = self.store.find_by_token(candidate.token)
                logger.info(f"Allocated QR asset {asset.token} (allocation {allocation_id})")
                return asset

            logger.debug(f"Allocation attempt {attempt + 1} lost the race or found no stock")
            if attempt < ALLOCATION_ATTEMPTS - 1:
                self.ensure_inventory(low_water_mark, replenish_count)

        raise ExhaustedRetries(
            "Failed to allocate a QR asset: no unregistered unreserved asset available after retry",
            requested=1,
            obtained=0,
            attempts=ALLOCATION_ATTEMPTS,
        )
