import logging
import secrets
from typing import Optional

from ...exceptions import (
    InvalidTransitionError,
    ScanTokenExpiredError,
    ScanTokenNotFoundError,
    UnknownScanActionError,
)
from ...extensions import db
from ...logging_config import token_hint
from ...models import BatchStage, ProductionBatch, ProductionScanToken
from ...utils.timezone_utils import TimezoneUtils
from ..base_service import BaseService, unit_of_work
from .stage_machine import BatchStageService, next_stage

logger = logging.getLogger(__name__)

TOKEN_BYTES = 24

SCAN_ACTIONS = {
    'hold': BatchStage.HOLD,
    'cancel': BatchStage.CANCELLED,
    'ship': BatchStage.SHIP,
    'complete': BatchStage.COMPLETE,
}


class ScanService(BaseService):
    """Physical scan tokens that let operators drive a batch from the floor."""

    @staticmethod
    def create_scan_token(batch: ProductionBatch, ttl_hours: int = 0) -> ProductionScanToken:
        """Add a fresh token for ``batch`` to the session without committing."""
        scan_token = ProductionScanToken(
            batch_id=batch.id,
            token=secrets.token_hex(TOKEN_BYTES),
            expires_at=TimezoneUtils.hours_from_now(ttl_hours) if ttl_hours and ttl_hours > 0 else None,
        )
        db.session.add(scan_token)
        return scan_token

    @classmethod
    def active_scan_token(cls, batch: ProductionBatch) -> Optional[ProductionScanToken]:
        now = TimezoneUtils.utc_now()
        tokens = (
            ProductionScanToken.query
            .filter_by(batch_id=batch.id)
            .order_by(ProductionScanToken.created_at.desc(), ProductionScanToken.id.desc())
            .all()
        )
        for scan_token in tokens:
            if not scan_token.is_expired(now):
                return scan_token
        return None

    @classmethod
    def ensure_active_scan_token(cls, batch: ProductionBatch, ttl_hours: int = 0,
                                 defer_commit: bool = True) -> ProductionScanToken:
        """Reuse the newest unexpired token, minting one when none is left."""
        scan_token = cls.active_scan_token(batch)
        if scan_token is not None:
            return scan_token
        with unit_of_work('ensure_scan_token', defer_commit=defer_commit, logger=logger):
            scan_token = cls.create_scan_token(batch, ttl_hours=ttl_hours)
            db.session.flush()
        logger.info("Minted scan token %s for batch %s", token_hint(scan_token.token), batch.id)
        return scan_token

    @staticmethod
    def resolve_token(token: str) -> ProductionScanToken:
        scan_token = ProductionScanToken.query.filter_by(token=(token or '').strip()).first()
        if scan_token is None:
            logger.warning("Scan with unknown token %s", token_hint(token))
            raise ScanTokenNotFoundError()
        if scan_token.is_expired():
            logger.warning("Scan with expired token %s (batch %s)", token_hint(token), scan_token.batch_id)
            raise ScanTokenExpiredError()
        return scan_token

    @staticmethod
    def target_for_action(batch: ProductionBatch, action: str) -> BatchStage:
        verb = (action or '').strip().lower()
        if verb == 'advance':
            target = next_stage(batch.stage)
            if target is None:
                raise InvalidTransitionError(
                    f"Batch in {batch.stage} has no next stage",
                    from_stage=batch.stage,
                )
            return target
        if verb not in SCAN_ACTIONS:
            raise UnknownScanActionError(action)
        return SCAN_ACTIONS[verb]

    @classmethod
    def perform_action(cls, token: str, action: str, note: Optional[str] = None,
                       actor_id: Optional[str] = None) -> ProductionBatch:
        """Resolve ``token`` and apply the verb to its batch. No tenant scoping."""
        scan_token = cls.resolve_token(token)
        batch = scan_token.batch
        target = cls.target_for_action(batch, action)
        logger.info(
            "Scan %s on batch %s via token %s", (action or '').lower(), batch.id, token_hint(token)
        )
        return BatchStageService.apply_transition(batch, target, actor_id=actor_id, note=note)
