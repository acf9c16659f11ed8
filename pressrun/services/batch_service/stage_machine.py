"""
Batch stage state machine.

Forward order ART -> APPROVED -> PRINT -> CURE -> PACK -> SHIP -> COMPLETE, with
HOLD and CANCELLED reachable from any non-terminal stage, HOLD included. Resuming
from HOLD may jump to any forward stage.
"""

import logging
from typing import FrozenSet, Optional

from flask import current_app

from ...exceptions import InvalidTransitionError, ProductionError, ValidationError
from ...extensions import db
from ...models import (
    BatchEventType,
    BatchStage,
    FORWARD_STAGES,
    ProductionBatch,
    ProductionBatchEvent,
    TERMINAL_STAGES,
)
from ...utils.timezone_utils import TimezoneUtils
from ..base_service import BaseService, load_batch, unit_of_work
from ..feature_gate import FeatureGateService
from ..inventory import (
    assert_batch_can_print,
    consume_for_batch,
    has_held_reservations,
    release_for_batch,
)

logger = logging.getLogger(__name__)


def parse_stage(value) -> BatchStage:
    try:
        return BatchStage(str(value or '').strip().upper())
    except ValueError:
        raise ValidationError(f"Unknown stage: {value}", field='to_stage')


def next_stage(current) -> Optional[BatchStage]:
    stage = BatchStage(current)
    if stage not in FORWARD_STAGES or stage in TERMINAL_STAGES:
        return None
    index = FORWARD_STAGES.index(stage)
    return FORWARD_STAGES[index + 1]


def allowed_targets(current) -> FrozenSet[BatchStage]:
    stage = BatchStage(current)
    if stage in TERMINAL_STAGES:
        return frozenset()
    if stage == BatchStage.HOLD:
        return frozenset(FORWARD_STAGES) | {BatchStage.HOLD, BatchStage.CANCELLED}
    targets = {BatchStage.HOLD, BatchStage.CANCELLED}
    following = next_stage(stage)
    if following is not None:
        targets.add(following)
    return frozenset(targets)


def event_type_for(target) -> BatchEventType:
    return {
        BatchStage.SHIP: BatchEventType.SHIPPED,
        BatchStage.COMPLETE: BatchEventType.COMPLETED,
        BatchStage.HOLD: BatchEventType.HOLD,
        BatchStage.CANCELLED: BatchEventType.CANCELLED,
    }.get(BatchStage(target), BatchEventType.STAGE_CHANGED)


def assert_transition(from_stage, to_stage) -> None:
    source = BatchStage(from_stage)
    target = BatchStage(to_stage)
    if source in TERMINAL_STAGES:
        raise InvalidTransitionError(
            f"Batch is {source.value} and cannot transition",
            from_stage=source.value,
            to_stage=target.value,
        )
    if target not in allowed_targets(source):
        raise InvalidTransitionError(
            f"Invalid transition {source.value} -> {target.value}",
            from_stage=source.value,
            to_stage=target.value,
        )


class BatchStageService(BaseService):
    """Apply stage transitions with their guards, hooks and audit events."""

    @classmethod
    def transition(cls, tenant_id: str, batch_id, to_stage, actor_id: Optional[str] = None,
                   note: Optional[str] = None) -> ProductionBatch:
        batch = load_batch(batch_id, tenant_id)
        return cls.apply_transition(batch, parse_stage(to_stage), actor_id=actor_id, note=note)

    @classmethod
    def apply_transition(cls, batch: ProductionBatch, to_stage, actor_id: Optional[str] = None,
                         note: Optional[str] = None) -> ProductionBatch:
        target = BatchStage(to_stage)
        source = BatchStage(batch.stage)

        try:
            assert_transition(source, target)
            inventory_enabled = FeatureGateService.inventory_enabled(batch.tenant_id)
            if target == BatchStage.PRINT and inventory_enabled:
                assert_batch_can_print(batch)
        except ProductionError:
            logger.warning(
                "Rejected transition for batch %s: %s -> %s", batch.id, source.value, target.value
            )
            raise

        note = (note or '').strip() or None
        with unit_of_work('transition_batch', logger=logger):
            values = {
                ProductionBatch.stage: target.value,
                ProductionBatch.updated_at: TimezoneUtils.utc_now(),
            }
            if note:
                values[ProductionBatch.notes] = f"{batch.notes}\n{note}" if batch.notes else note

            # Compare-and-set on the stage that was read; a concurrent writer wins.
            updated = (
                db.session.query(ProductionBatch)
                .filter(ProductionBatch.id == batch.id, ProductionBatch.stage == source.value)
                .update(values, synchronize_session=False)
            )
            if updated != 1:
                raise InvalidTransitionError(
                    "Batch stage changed concurrently; reload and retry",
                    from_stage=source.value,
                    to_stage=target.value,
                )
            db.session.refresh(batch)

            # The stage update holds the batch row lock, which serializes these hooks
            # with reserve/release/consume calls on the same batch.
            hook_meta = cls._run_inventory_hooks(batch, target, actor_id, inventory_enabled)

            meta = dict(hook_meta)
            if note:
                meta['note'] = note
            db.session.add(ProductionBatchEvent(
                batch_id=batch.id,
                type=event_type_for(target).value,
                from_stage=source.value,
                to_stage=target.value,
                actor_id=actor_id,
                meta=meta or None,
            ))

        logger.info(
            "Batch %s transitioned %s -> %s (actor=%s)", batch.id, source.value, target.value, actor_id
        )
        return batch

    @staticmethod
    def _run_inventory_hooks(batch, target, actor_id, inventory_enabled):
        if not inventory_enabled or not has_held_reservations(batch.id):
            return {}
        config = current_app.config
        if target == BatchStage.CANCELLED and config.get('PRODUCTION_RELEASE_ON_CANCEL', True):
            return release_for_batch(batch, actor_id=actor_id, defer_commit=True)
        if target == BatchStage.COMPLETE and config.get('PRODUCTION_CONSUME_ON_COMPLETE', True):
            return consume_for_batch(batch, actor_id=actor_id, defer_commit=True)
        return {}
