"""
QR Asset Lifecycle
UNREGISTERED -> REGISTERED -> RETIRED, one step at a time, never backwards.

Every transition is a single conditional UPDATE on the current status, so two
concurrent callers against the same token resolve to exactly one success and
one typed failure with no partially-written record.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError

from qr_assets.buisness.token_generator import normalize_token
from qr_assets.data.asset_store import AssetStore
from qr_assets.data.qr_asset import QRAsset, QRAssetStatus, ResourceScope, utcnow
from qr_assets.errors import AlreadyAssigned, BindingConflict, InvalidStateError, NotFound, ValidationError
from qr_assets.logger import get_logger

logger = get_logger("qr_assets.buisness.lifecycle")

ALLOWED_TRANSITIONS = {
    QRAssetStatus.UNREGISTERED: frozenset({QRAssetStatus.REGISTERED}),
    QRAssetStatus.REGISTERED: frozenset({QRAssetStatus.RETIRED}),
    QRAssetStatus.RETIRED: frozenset(),
}

if set(ALLOWED_TRANSITIONS) != set(QRAssetStatus):
    raise RuntimeError("Transition table must cover every QRAssetStatus")

RESOURCE_ID_MAX_LENGTH = 64


@dataclass(frozen=True)
class StatusChange:
    token: str
    from_status: QRAssetStatus
    to_status: QRAssetStatus
    changed_at: datetime


@dataclass(frozen=True)
class TransitionResult:
    asset: QRAsset
    change: StatusChange


def predecessor_of(target: QRAssetStatus) -> QRAssetStatus:
    """The only status from which target can be reached"""
    sources = [status for status, targets in ALLOWED_TRANSITIONS.items() if target in targets]
    if len(sources) != 1:
        raise ValueError(f"{target.value} is not reachable by a single transition")
    return sources[0]


def parse_scope(scope) -> ResourceScope:
    if isinstance(scope, ResourceScope):
        return scope
    if isinstance(scope, str):
        try:
            return ResourceScope[scope.strip().upper()]
        except KeyError:
            pass
    valid = ", ".join(member.value for member in ResourceScope)
    raise ValidationError(f"resource scope must be one of {valid} (got {scope!r})")


def validate_binding(venue_id, scope, resource_id=None):
    """
    Normalize and check a venue resource binding.

    STORE bindings may omit resource_id; the venue itself is the resource.
    TABLE and SEAT bindings must name the resource.

    Returns:
        tuple: (venue_id, ResourceScope, resource_id)

    Raises:
        ValidationError: On a missing venue, unknown scope or missing resource
    """
    venue_id = str(venue_id).strip() if venue_id is not None else ""
    if not venue_id:
        raise ValidationError("venue_id is required")

    scope = parse_scope(scope)

    resource_id = str(resource_id).strip() if resource_id is not None else ""
    if not resource_id:
        if scope is not ResourceScope.STORE:
            raise ValidationError(f"resource_id is required for resource scope {scope.value}")
        resource_id = venue_id

    if len(venue_id) > RESOURCE_ID_MAX_LENGTH or len(resource_id) > RESOURCE_ID_MAX_LENGTH:
        raise ValidationError(f"venue_id and resource_id must be at most {RESOURCE_ID_MAX_LENGTH} characters")

    return venue_id, scope, resource_id


class LifecycleStateMachine:
    """Applies register/retire transitions through AssetStore compare-and-swap"""

    def __init__(self, store: AssetStore):
        self.store = store

    def register(
        self,
        token: str,
        venue_id: str,
        scope,
        resource_id: Optional[str] = None,
        activated_by: Optional[str] = None,
        activation_source: str = "registration",
    ) -> TransitionResult:
        """
        Bind an UNREGISTERED asset to a venue resource.

        Raises:
            ValidationError: Malformed token or binding
            NotFound: Unknown token
            AlreadyAssigned: Asset is not UNREGISTERED; the record is left untouched
            BindingConflict: The venue resource already has a REGISTERED asset
        """
        token = normalize_token(token)
        venue_id, scope, resource_id = validate_binding(venue_id, scope, resource_id)
        now = utcnow()

        fields = {
            'status': QRAssetStatus.REGISTERED,
            'venue_id': venue_id,
            'resource_scope': scope,
            'resource_id': resource_id,
            'reserved_order_id': None,
            'activated_at': now,
            'activated_by': activated_by,
            'activation_source': activation_source,
        }
        try:
            result = self._transition(token, QRAssetStatus.REGISTERED, fields, now)
        except IntegrityError:
            logger.warning(f"QR asset {token} not registered: venue {venue_id} {scope.value} {resource_id} is taken")
            raise BindingConflict(token, venue_id, scope.value, resource_id)
        logger.info(f"QR asset {token} registered to venue {venue_id} ({scope.value} {resource_id})")
        return result

    def retire(self, token: str) -> TransitionResult:
        """
        Retire a REGISTERED asset, keeping venue_id/resource_scope/resource_id for the audit trail.

        Raises:
            ValidationError: Malformed token
            NotFound: Unknown token
            InvalidStateError: Asset is not REGISTERED
        """
        token = normalize_token(token)
        now = utcnow()
        # Assignment fields are deliberately absent: retirement never clears them
        fields = {
            'status': QRAssetStatus.RETIRED,
            'retired_at': now,
        }
        result = self._transition(token, QRAssetStatus.RETIRED, fields, now)
        logger.info(f"QR asset {token} retired")
        return result

    def _transition(self, token, target, fields, now) -> TransitionResult:
        source = predecessor_of(target)

        if self.store.update_status_if_current(token, source, fields):
            asset = self.store.find_by_token(token)
            return TransitionResult(asset, StatusChange(token, source, target, now))

        current = self.store.find_by_token(token)
        if current is None:
            logger.warning(f"Transition to {target.value} failed: QR asset {token} not found")
            raise NotFound(f"QR asset {token} not found", token=token)

        logger.warning(
            f"Transition to {target.value} rejected for QR asset {token} (current status: {current.status.value})"
        )
        if target is QRAssetStatus.REGISTERED:
            raise AlreadyAssigned(token, current.status.value)
        raise InvalidStateError(token, current.status.value, source.value)
