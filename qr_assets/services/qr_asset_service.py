"""
QR Asset Service
Caller-facing operations for admin tooling and the public resolve/registration
flows. Authorization is the caller's responsibility; everything here assumes
a pre-authorized request.

Handles:
- Batch creation and inventory replenishment
- Register / retire / resolve of single assets
- Venue summaries and the admin asset listing
Results are plain dictionaries ready for JSON.
"""

from datetime import timedelta
from typing import Dict, Optional

from flask import current_app

from qr_assets.buisness.inventory_gate import InventoryGate
from qr_assets.buisness.lifecycle import LifecycleStateMachine
from qr_assets.buisness.resource_binder import ResourceBinder
from qr_assets.buisness.scan_events import record_scan
from qr_assets.buisness.token_generator import is_well_formed
from qr_assets.buisness.uniqueness_resolver import UniquenessResolver
from qr_assets.data.asset_store import AssetStore, SQLAlchemyAssetStore
from qr_assets.data.qr_asset import QRAsset, QRAssetStatus, ResourceScope, utcnow
from qr_assets.data.qr_event import QREvent
from qr_assets.logger import get_logger

logger = get_logger("qr_assets.services.qr_asset_service")

MAX_PAGE_SIZE = 100


class QRAssetService:
    """
    Facade wiring the business components to one store and one policy config.

    Args:
        store: Persistence contract; defaults to the SQLAlchemy store
        config: Mapping with the QR_* policy keys; defaults to current_app.config
    """

    def __init__(self, store: Optional[AssetStore] = None, config: Optional[Dict] = None):
        if config is None:
            config = current_app.config
        self.store = store or SQLAlchemyAssetStore()
        self.low_water_mark = config.get('QR_LOW_WATER_MARK', 30)
        self.replenish_count = config.get('QR_REPLENISH_COUNT', 100)

        self.resolver = UniquenessResolver(
            self.store,
            max_attempts=config.get('QR_MAX_ATTEMPTS', 10),
            oversample_factor=config.get('QR_OVERSAMPLE_FACTOR', 2),
            max_round_size=config.get('QR_MAX_ROUND_SIZE', 1000),
        )
        self.inventory = InventoryGate(self.store, self.resolver)
        self.lifecycle = LifecycleStateMachine(self.store)
        self.binder = ResourceBinder(self.store, self.lifecycle, self.inventory)

    def generate_batch(self, count: int) -> Dict:
        """Create `count` UNREGISTERED assets under a fresh batch id"""
        batch = self.inventory.create_batch(count)
        return {
            'created_count': batch.created_count,
            'batch_id': batch.batch_id,
            'sample_tokens': batch.sample_tokens,
        }

    def check_and_replenish(self, low_water_mark: Optional[int] = None, replenish_count: Optional[int] = None) -> Dict:
        report = self.inventory.ensure_inventory(
            self.low_water_mark if low_water_mark is None else low_water_mark,
            self.replenish_count if replenish_count is None else replenish_count,
        )
        return {
            'available_before': report.available_before,
            'available_after': report.available_after,
            'created': report.created,
            'replenished': report.replenished,
            'batch_id': report.batch_id,
        }

    def register(self, token, venue_id, scope, resource_id=None, activated_by=None) -> Dict:
        result = self.lifecycle.register(token, venue_id, scope, resource_id, activated_by=activated_by)
        return result.asset.to_dict()

    def retire(self, token) -> Dict:
        return self.lifecycle.retire(token).asset.to_dict()

    def resolve(self, token) -> Dict:
        return self.binder.lookup_by_token(token).to_dict()

    def allocate_and_register(self, venue_id, scope, resource_id=None, activated_by=None) -> Dict:
        asset, already_existed = self.binder.allocate_and_register(
            venue_id,
            scope,
            resource_id,
            activated_by=activated_by,
            low_water_mark=self.low_water_mark,
            replenish_count=self.replenish_count,
        )
        return {
            'token': asset.token,
            'qr_asset_id': asset.id,
            'status': asset.status.value,
            'already_existed': already_existed,
        }

    def record_scan(self, token, user_id=None, session_id=None, user_agent=None) -> bool:
        """Record a scan of token; unknown tokens are recorded without an asset. Never raises."""
        token = token.strip() if isinstance(token, str) else ""
        if not is_well_formed(token):
            logger.warning("Ignoring scan of malformed token")
            return False
        asset = self.store.find_by_token(token, case_insensitive=True)
        event = record_scan(token, asset, user_id=user_id, session_id=session_id, user_agent=user_agent)
        return event is not None

    def venue_resource_summary(self, venue_id) -> Dict:
        """
        Per-scope asset counts for a venue, retired assets included.

        Raises:
            NotFound: No asset has ever been bound to the venue
        """
        grouped = self.binder.list_venue_resources(venue_id)

        counts = {}
        registered = {}
        retired = {}
        for scope, assets in grouped.items():
            counts[scope.value] = len(assets)
            registered[scope.value] = sum(1 for a in assets if a.status == QRAssetStatus.REGISTERED)
            retired[scope.value] = sum(1 for a in assets if a.status == QRAssetStatus.RETIRED)

        return {
            'venue_id': venue_id,
            'total': sum(counts.values()),
            'counts': counts,
            'registered': registered,
            'retired': retired,
        }

    @staticmethod
    def build_filtered_query(status=None, venue_id=None, batch_id=None, reserved=None):
        """
        Build a filtered asset query, newest first.

        Args:
            status: Status name; unknown values are ignored
            venue_id: Filter by bound venue
            batch_id: Filter by creation batch
            reserved: True for reserved only, False for unreserved only

        Returns:
            SQLAlchemy query object
        """
        query = QRAsset.query

        if status and status in QRAssetStatus.__members__:
            query = query.filter(QRAsset.status == QRAssetStatus[status])

        if venue_id:
            query = query.filter(QRAsset.venue_id == venue_id)

        if batch_id:
            query = query.filter(QRAsset.batch_id == batch_id)

        if reserved is True:
            query = query.filter(QRAsset.reserved_order_id.isnot(None))
        elif reserved is False:
            query = query.filter(QRAsset.reserved_order_id.is_(None))

        return query.order_by(QRAsset.created_at.desc(), QRAsset.id.desc())

    def inventory_summary(self) -> Dict:
        now = utcnow()
        scans = QREvent.query.filter(QREvent.event_type == 'scan')
        return {
            'available_unregistered': self.inventory.available_count(),
            'reserved_for_orders': QRAsset.query.filter(QRAsset.reserved_order_id.isnot(None)).count(),
            'registered': self.store.count_by_status(QRAssetStatus.REGISTERED),
            'retired': self.store.count_by_status(QRAssetStatus.RETIRED),
            'scans_last_24h': scans.filter(QREvent.created_at >= now - timedelta(hours=24)).count(),
            'scans_last_7d': scans.filter(QREvent.created_at >= now - timedelta(days=7)).count(),
        }

    def list_assets(self, page=1, page_size=20, status=None, venue_id=None, batch_id=None, reserved=None) -> Dict:
        """Paginated admin listing with inventory summary counts"""
        page = max(1, int(page or 1))
        page_size = min(MAX_PAGE_SIZE, max(1, int(page_size or 20)))

        query = self.build_filtered_query(status=status, venue_id=venue_id, batch_id=batch_id, reserved=reserved)
        pagination = query.paginate(page=page, per_page=page_size, error_out=False)

        return {
            'summary': self.inventory_summary(),
            'total': pagination.total,
            'page': page,
            'page_size': page_size,
            'items': [asset.to_dict() for asset in pagination.items],
        }


def scope_choices():
    return [scope.value for scope in ResourceScope]
