"""
Scan event recording for the public resolve flow.
A failed write is rolled back and logged; it never breaks the scan.
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from qr_assets import db
from qr_assets.data.qr_asset import QRAsset
from qr_assets.data.qr_event import QREvent
from qr_assets.logger import get_logger

logger = get_logger("qr_assets.buisness.scan_events")


def record_scan(
    token: str,
    asset: Optional[QRAsset] = None,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Optional[QREvent]:
    """
    Append a scan event for token.

    Returns:
        QREvent, or None if the write failed
    """
    event = QREvent(
        token=token,
        qr_asset_id=asset.id if asset is not None else None,
        event_type='scan',
        venue_id=asset.venue_id if asset is not None else None,
        resource_scope=asset.resource_scope if asset is not None else None,
        resource_id=asset.resource_id if asset is not None else None,
        user_id=user_id,
        session_id=session_id,
        user_agent=user_agent[:512] if user_agent else None,
    )
    try:
        db.session.add(event)
        db.session.commit()
        return event
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to record QR scan event for {token}: {e}")
        return None
