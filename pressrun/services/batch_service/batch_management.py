import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import String, cast, or_

from ...exceptions import ValidationError
from ...extensions import db
from ...models import (
    AssignmentRole,
    BatchEventType,
    ProductionAssignment,
    ProductionBatch,
    ProductionBatchEvent,
    ProductionBatchItem,
)
from ..base_service import BaseService, load_batch, unit_of_work
from .formation import normalize_method
from .scan import ScanService

logger = logging.getLogger(__name__)


class BatchManagementService(BaseService):
    """Read, search and assign production batches for a tenant."""

    @classmethod
    def list_batches(cls, tenant_id: str, stage: Optional[str] = None, method: Optional[str] = None,
                     store_id: Optional[str] = None, campaign_id: Optional[str] = None,
                     q: Optional[str] = None) -> List[ProductionBatch]:
        query = ProductionBatch.for_tenant(tenant_id)

        if stage:
            query = query.filter(ProductionBatch.stage == str(stage).strip().upper())
        if method:
            query = query.filter(ProductionBatch.method == normalize_method(method))
        if store_id:
            query = query.filter(ProductionBatch.store_id == store_id)
        if campaign_id:
            query = query.filter(
                ProductionBatch.items.any(ProductionBatchItem.campaign_id == campaign_id)
            )
        if q and q.strip():
            pattern = f"%{q.strip()}%"
            query = query.filter(or_(
                cast(ProductionBatch.id, String).ilike(pattern),
                ProductionBatch.source_id.ilike(pattern),
                ProductionBatch.notes.ilike(pattern),
            ))

        # Due date first with undated batches last, then newest.
        return query.order_by(
            ProductionBatch.due_at.is_(None).asc(),
            ProductionBatch.due_at.asc(),
            ProductionBatch.created_at.desc(),
            ProductionBatch.id.desc(),
        ).all()

    @classmethod
    def batch_detail(cls, tenant_id: str, batch_id) -> Dict[str, Any]:
        """Batch with items, event trail, assignment history and its current scan token."""
        batch = load_batch(batch_id, tenant_id)
        scan_token = ScanService.active_scan_token(batch)
        data = batch.to_dict()
        data['events'] = [event.to_dict() for event in batch.events]
        data['assignments'] = [
            assignment.to_dict()
            for assignment in sorted(batch.assignments, key=lambda a: a.id, reverse=True)
        ]
        data['scan_token'] = scan_token.token if scan_token else None
        return data

    @classmethod
    def _release_open_assignments(cls, batch: ProductionBatch) -> int:
        open_assignments = ProductionAssignment.query.filter(
            ProductionAssignment.batch_id == batch.id,
            ProductionAssignment.released_at.is_(None),
        ).all()
        for assignment in open_assignments:
            assignment.mark_released()
        return len(open_assignments)

    @classmethod
    def assign(cls, tenant_id: str, batch_id, user_id: str, actor_id: Optional[str] = None,
               role: str = AssignmentRole.OPERATOR.value) -> ProductionAssignment:
        user_id = (str(user_id).strip() if user_id is not None else '')
        if not user_id:
            raise ValidationError("user_id is required", field='user_id')
        try:
            role = AssignmentRole(str(role or AssignmentRole.OPERATOR.value).upper()).value
        except ValueError:
            raise ValidationError(f"Unsupported role: {role}", field='role')

        batch = load_batch(batch_id, tenant_id)
        with unit_of_work('assign_batch', logger=logger):
            cls._release_open_assignments(batch)
            assignment = ProductionAssignment(batch_id=batch.id, user_id=user_id, role=role)
            db.session.add(assignment)
            db.session.add(ProductionBatchEvent(
                batch_id=batch.id,
                type=BatchEventType.ASSIGNED.value,
                actor_id=actor_id,
                meta={'user_id': user_id, 'role': role},
            ))

        cls.log_operation('assign_batch', {'batch_id': batch.id, 'user_id': user_id, 'role': role}, actor_id)
        return assignment

    @classmethod
    def unassign(cls, tenant_id: str, batch_id, actor_id: Optional[str] = None) -> Dict[str, int]:
        batch = load_batch(batch_id, tenant_id)
        with unit_of_work('unassign_batch', logger=logger):
            released = cls._release_open_assignments(batch)
            db.session.add(ProductionBatchEvent(
                batch_id=batch.id,
                type=BatchEventType.UNASSIGNED.value,
                actor_id=actor_id,
                meta={'released_count': released},
            ))

        cls.log_operation('unassign_batch', {'batch_id': batch.id, 'released': released}, actor_id)
        return {'released': released}
