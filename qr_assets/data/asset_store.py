"""
QR Asset Store
Persistence contract consumed by the QR asset business layer, plus the
SQLAlchemy implementation backing it.

The store owns the two primitives every correctness argument rests on:
- insert_many() with skip_duplicates: "insert, ignore on unique conflict"
- update_status_if_current(): a single conditional UPDATE on status

Neither takes an application-level lock.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from qr_assets import db
from qr_assets.data.qr_asset import QRAsset, QRAssetStatus, ResourceScope, utcnow
from qr_assets.logger import get_logger

logger = get_logger("qr_assets.data.asset_store")

# Keeps bound parameters per statement under SQLite's historical 999 limit
INSERT_CHUNK_SIZE = 200
LOOKUP_CHUNK_SIZE = 500


class AssetStore(ABC):
    """Abstract persistence contract for QR assets"""

    @abstractmethod
    def exists_any(self, tokens: Iterable[str]) -> Set[str]:
        """Return the subset of tokens already present in the store"""
        pass

    @abstractmethod
    def insert_many(self, assets: List[Dict], skip_duplicates: bool = True) -> int:
        """
        Insert new assets.

        Args:
            assets: Dicts with at least `token`; `batch_id` and `status` are optional
            skip_duplicates: Ignore rows whose token already exists instead of failing

        Returns:
            int: Number of rows actually inserted
        """
        pass

    @abstractmethod
    def update_status_if_current(self, token: str, expected_status: QRAssetStatus, new_fields: Dict) -> bool:
        """
        Atomically apply new_fields when the stored status equals expected_status.

        Raises:
            IntegrityError: new_fields would give a venue resource a second REGISTERED asset
        """
        pass

    @abstractmethod
    def find_by_token(self, token: str, case_insensitive: bool = False) -> Optional[QRAsset]:
        """
        Exact match first. With case_insensitive, fall back to a unique
        match ignoring case; an ambiguous fallback finds nothing.
        """
        pass

    @abstractmethod
    def find_tokens_in_batch(self, batch_id: str, tokens: Iterable[str]) -> Set[str]:
        """Subset of tokens stored under batch_id"""
        pass

    @abstractmethod
    def find_by_venue(self, venue_id: str) -> List[QRAsset]:
        pass

    @abstractmethod
    def count_by_status(self, status: QRAssetStatus, unreserved_only: bool = False) -> int:
        pass

    @abstractmethod
    def find_oldest_available(self) -> Optional[QRAsset]:
        """Oldest UNREGISTERED asset without a reservation"""
        pass

    @abstractmethod
    def reserve_if_unreserved(self, asset_id: int, allocation_id: str) -> bool:
        """Atomically claim an unregistered asset for allocation_id"""
        pass

    @abstractmethod
    def release_reservation(self, asset_id: int, allocation_id: str) -> bool:
        """Clear the reservation on an UNREGISTERED asset if allocation_id still holds it"""
        pass

    @abstractmethod
    def find_registered_binding(self, venue_id: str, scope: ResourceScope, resource_id: str) -> Optional[QRAsset]:
        """REGISTERED asset currently bound to the given venue resource, if any"""
        pass


class SQLAlchemyAssetStore(AssetStore):
    """AssetStore backed by the Flask-SQLAlchemy session (SQLite or PostgreSQL)"""

    def exists_any(self, tokens):
        tokens = list(set(tokens))
        found = set()
        for start in range(0, len(tokens), LOOKUP_CHUNK_SIZE):
            chunk = tokens[start:start + LOOKUP_CHUNK_SIZE]
            rows = db.session.query(QRAsset.token).filter(QRAsset.token.in_(chunk)).all()
            found.update(row.token for row in rows)
        return found

    def insert_many(self, assets, skip_duplicates=True):
        now = utcnow()
        rows = [
            {
                'token': asset['token'],
                'status': asset.get('status', QRAssetStatus.UNREGISTERED),
                'batch_id': asset.get('batch_id'),
                'created_at': asset.get('created_at', now),
            }
            for asset in assets
        ]
        if not rows:
            return 0

        inserted = 0
        try:
            for start in range(0, len(rows), INSERT_CHUNK_SIZE):
                statement = self._insert_statement(rows[start:start + INSERT_CHUNK_SIZE], skip_duplicates)
                inserted += len(db.session.execute(statement).all())
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error inserting {len(rows)} QR assets: {e}")
            raise

        skipped = len(rows) - inserted
        if skipped:
            logger.warning(f"Skipped {skipped} duplicate QR tokens during bulk insert")
        return inserted

    def _insert_statement(self, rows, skip_duplicates):
        dialect = db.engine.dialect.name
        if dialect == 'postgresql':
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == 'sqlite':
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise NotImplementedError(f"insert-skip-duplicates is not available for dialect '{dialect}'")

        statement = insert(QRAsset).values(rows)
        if skip_duplicates:
            statement = statement.on_conflict_do_nothing(index_elements=['token'])
        return statement.returning(QRAsset.token)

    def update_status_if_current(self, token, expected_status, new_fields):
        statement = (
            update(QRAsset)
            .where(QRAsset.token == token, QRAsset.status == expected_status)
            .values(**new_fields)
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.session.execute(statement)
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            logger.warning(f"Update of QR asset {token} rejected by a unique constraint: {e.orig}")
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error updating QR asset {token}: {e}")
            raise
        return result.rowcount == 1

    def find_by_token(self, token, case_insensitive=False):
        asset = QRAsset.query.filter_by(token=token).first()
        if asset is not None or not case_insensitive:
            return asset

        matches = (
            QRAsset.query
            .filter(func.lower(QRAsset.token) == token.lower())
            .order_by(QRAsset.id.asc())
            .limit(2)
            .all()
        )
        if len(matches) > 1:
            logger.warning(f"Case-insensitive lookup of {token} matches several QR assets; refusing to pick one")
            return None
        return matches[0] if matches else None

    def find_tokens_in_batch(self, batch_id, tokens):
        tokens = list(set(tokens))
        found = set()
        for start in range(0, len(tokens), LOOKUP_CHUNK_SIZE):
            chunk = tokens[start:start + LOOKUP_CHUNK_SIZE]
            rows = (
                db.session.query(QRAsset.token)
                .filter(QRAsset.batch_id == batch_id, QRAsset.token.in_(chunk))
                .all()
            )
            found.update(row.token for row in rows)
        return found

    def find_by_venue(self, venue_id):
        return (
            QRAsset.query
            .filter_by(venue_id=venue_id)
            .order_by(QRAsset.activated_at.asc(), QRAsset.id.asc())
            .all()
        )

    def count_by_status(self, status, unreserved_only=False):
        query = QRAsset.query.filter(QRAsset.status == status)
        if unreserved_only:
            query = query.filter(QRAsset.reserved_order_id.is_(None))
        return query.count()

    def find_oldest_available(self):
        return (
            QRAsset.query
            .filter(QRAsset.status == QRAssetStatus.UNREGISTERED, QRAsset.reserved_order_id.is_(None))
            .order_by(QRAsset.created_at.asc(), QRAsset.id.asc())
            .first()
        )

    def reserve_if_unreserved(self, asset_id, allocation_id):
        statement = (
            update(QRAsset)
            .where(
                QRAsset.id == asset_id,
                QRAsset.status == QRAssetStatus.UNREGISTERED,
                QRAsset.reserved_order_id.is_(None),
            )
            .values(reserved_order_id=allocation_id)
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.session.execute(statement)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error reserving QR asset {asset_id}: {e}")
            raise
        return result.rowcount == 1

    def release_reservation(self, asset_id, allocation_id):
        statement = (
            update(QRAsset)
            .where(
                QRAsset.id == asset_id,
                QRAsset.status == QRAssetStatus.UNREGISTERED,
                QRAsset.reserved_order_id == allocation_id,
            )
            .values(reserved_order_id=None)
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.session.execute(statement)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error releasing reservation on QR asset {asset_id}: {e}")
            raise
        return result.rowcount == 1

    def find_registered_binding(self, venue_id, scope, resource_id):
        return (
            QRAsset.query
            .filter_by(
                venue_id=venue_id,
                resource_scope=scope,
                resource_id=resource_id,
                status=QRAssetStatus.REGISTERED,
            )
            .order_by(QRAsset.id.asc())
            .first()
        )
