"""
Resource Binder / Lookup
Point lookups by token, per-venue aggregation, and the allocate-then-register
flow used when a venue prints a sticker for one of its resources.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from qr_assets.buisness.inventory_gate import InventoryGate
from qr_assets.buisness.lifecycle import LifecycleStateMachine, validate_binding
from qr_assets.buisness.token_generator import normalize_token
from qr_assets.data.asset_store import AssetStore
from qr_assets.data.qr_asset import QRAsset, ResourceScope
from qr_assets.errors import BindingConflict, NotFound
from qr_assets.logger import get_logger

logger = get_logger("qr_assets.buisness.resource_binder")


class ResourceBinder:

    def __init__(self, store: AssetStore, lifecycle: LifecycleStateMachine, inventory: InventoryGate):
        self.store = store
        self.lifecycle = lifecycle
        self.inventory = inventory

    def lookup_by_token(self, token: str) -> QRAsset:
        """
        Find an asset by token, falling back to a case-insensitive match
        since scanners and URL handlers sometimes alter case.

        Raises:
            ValidationError: Malformed token
            NotFound: No asset carries the token
        """
        token = normalize_token(token)
        asset = self.store.find_by_token(token, case_insensitive=True)
        if asset is None:
            raise NotFound(f"QR asset {token} not found", token=token)
        return asset

    def list_venue_resources(self, venue_id: str) -> Dict[ResourceScope, List[QRAsset]]:
        """
        Group every asset ever bound to a venue by resource scope, retired ones included.

        Read-only. Every scope is present in the result, possibly empty.

        Raises:
            NotFound: No asset has ever been bound to the venue
        """
        assets = self.store.find_by_venue(venue_id)
        if not assets:
            raise NotFound(f"No QR assets bound to venue {venue_id}", venue_id=venue_id)

        grouped = {scope: [] for scope in ResourceScope}
        for asset in assets:
            grouped[asset.resource_scope].append(asset)
        return grouped

    def allocate_and_register(
        self,
        venue_id: str,
        scope,
        resource_id: Optional[str] = None,
        activated_by: Optional[str] = None,
        low_water_mark: Optional[int] = None,
        replenish_count: Optional[int] = None,
    ) -> Tuple[QRAsset, bool]:
        """
        Return the asset bound to a venue resource, allocating and registering one if none is.

        Concurrent calls for one resource agree on a single asset; losers
        release their allocation and report already_existed.

        Returns:
            tuple: (asset, already_existed)
        """
        venue_id, scope, resource_id = validate_binding(venue_id, scope, resource_id)

        existing = self.store.find_registered_binding(venue_id, scope, resource_id)
        if existing is not None:
            logger.debug(f"Venue {venue_id} {scope.value} {resource_id} already bound to {existing.token}")
            return existing, True

        allocation_kwargs = {}
        if low_water_mark is not None:
            allocation_kwargs['low_water_mark'] = low_water_mark
        if replenish_count is not None:
            allocation_kwargs['replenish_count'] = replenish_count

        allocated = self.inventory.allocate_one(**allocation_kwargs)
        try:
            result = self.lifecycle.register(
                allocated.token,
                venue_id,
                scope,
                resource_id,
                activated_by=activated_by,
                activation_source="venue_print",
            )
        except BindingConflict:
            # A concurrent caller bound the resource first; hand our asset back to stock
            if allocated.is_reserved:
                self.store.release_reservation(allocated.id, allocated.reserved_order_id)
            winner = self.store.find_registered_binding(venue_id, scope, resource_id)
            if winner is None:
                raise
            logger.info(f"Venue {venue_id} {scope.value} {resource_id} bound concurrently to {winner.token}")
            return winner, True
        return result.asset, False
