import enum
from datetime import datetime, timezone

from qr_assets import db
from qr_assets.data.serialization import SerializationMixin


def utcnow():
    """Naive UTC timestamp, matching how the DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class QRAssetStatus(enum.Enum):
    UNREGISTERED = "UNREGISTERED"
    REGISTERED = "REGISTERED"
    RETIRED = "RETIRED"


class ResourceScope(enum.Enum):
    STORE = "STORE"
    TABLE = "TABLE"
    SEAT = "SEAT"


RESOURCE_SCOPE_TYPE = db.Enum(ResourceScope, name='qr_resource_scope')

ASSIGNMENT_FIELDS = ("venue_id", "resource_scope", "resource_id")


class QRAsset(db.Model, SerializationMixin):
    """
    A printable identifier that may be bound at most once to a venue resource.
    A venue resource carries at most one REGISTERED asset at a time.

    Rows are created in bulk, registered once, retired once and never deleted.
    The unique constraint on token is the final uniqueness gate for concurrent
    batch creation.
    """
    __tablename__ = 'qr_assets'
    __table_args__ = (
        # At most one REGISTERED asset per venue resource
        db.Index(
            'uq_qr_assets_registered_binding',
            'venue_id',
            'resource_scope',
            'resource_id',
            unique=True,
            sqlite_where=db.text("status = 'REGISTERED'"),
            postgresql_where=db.text("status = 'REGISTERED'"),
        ),
    )

    id =db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    status = db.Column(
        db.Enum(QRAssetStatus, name='qr_asset_status'),
        nullable=False,
        default=QRAssetStatus.UNREGISTERED,
        index=True,
    )
    batch_id = db.Column(db.String(64), nullable=True, index=True)

    # Assignment; null while UNREGISTERED, immutable once REGISTERED
    venue_id = db.Column(db.String(64), nullable=True, index=True)
    resource_scope = db.Column(RESOURCE_SCOPE_TYPE, nullable=True)
    resource_id = db.Column(db.String(64), nullable=True)

    # Set while an unregistered asset is claimed for an order or a print run
    reserved_order_id = db.Column(db.String(64), nullable=True)

    activated_at = db.Column(db.DateTime, nullable=True)
    activated_by = db.Column(db.String(128), nullable=True)
    activation_source = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    retired_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_reserved(self):
        return self.reserved_order_id is not None

    def assignment(self):
        """Current (venue_id, resource_scope, resource_id) triple"""
        return tuple(getattr(self, field) for field in ASSIGNMENT_FIELDS)

    def __repr__(self):
        return f'<QRAsset {self.token} ({self.status.value if self.status else None})>'
