from qr_assets import db
from qr_assets.data.qr_asset import RESOURCE_SCOPE_TYPE, utcnow
from qr_assets.data.serialization import SerializationMixin


class QREvent(db.Model, SerializationMixin):
    """Append-only record of a token being scanned"""
    __tablename__ = 'qr_events'

    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(64), nullable=False, index=True)
    qr_asset_id = db.Column(db.Integer, db.ForeignKey('qr_assets.id'), nullable=True)
    event_type = db.Column(db.String(32), nullable=False, default='scan')
    venue_id = db.Column(db.String(64), nullable=True)
    resource_scope = db.Column(RESOURCE_SCOPE_TYPE, nullable=True)
    resource_id = db.Column(db.String(64), nullable=True)
    user_id = db.Column(db.String(64), nullable=True)
    session_id = db.Column(db.String(128), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self):
        return f'<QREvent {self.event_type} {self.token}>'
