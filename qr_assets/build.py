#!/usr/bin/env python3
"""
Database build for the QR asset inventory
Creates tables and optionally seeds the initial unregistered pool
"""

from qr_assets import db
from qr_assets.logger import get_logger

logger = get_logger("qr_assets.build")


def build_database(seed_inventory=False):
    """
    Create all tables; must run inside an application context.

    Args:
        seed_inventory (bool): Top the unregistered pool up to the configured
            low-water mark after creating tables

    Returns:
        dict or None: Replenishment report when seeding
    """
    # Import models so their tables are part of the metadata
    from qr_assets.data.qr_asset import QRAsset
    from qr_assets.data.qr_event import QREvent

    logger.debug("Creating QR asset tables")
    db.create_all()
    logger.info("QR asset tables ready")

    if not seed_inventory:
        return None

    from qr_assets.services.qr_asset_service import QRAssetService
    report = QRAssetService().check_and_replenish()
    if report['replenished']:
        logger.info(f"Seeded {report['created']} QR assets (batch {report['batch_id']})")
    return report
