import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional

from ..exceptions import BatchNotFoundError, ProductionError
from ..extensions import db
from ..models import ProductionBatch


class BaseService:
    """Base service class providing common functionality"""

    logger = logging.getLogger('pressrun.services')

    @classmethod
    def log_operation(cls, operation: str, data: Dict[str, Any], actor_id: Optional[str] = None):
        """Centralized operation logging"""
        cls.logger.info(
            "Operation: %s %s",
            operation,
            data,
            extra={'operation': operation, 'actor_id': actor_id, 'service': cls.__name__},
        )


@contextmanager
def unit_of_work(operation: str, defer_commit: bool = False, logger: Optional[logging.Logger] = None):
    """Commit on success, roll back and re-raise on failure.

    With ``defer_commit`` the caller owns the transaction: nothing is committed or
    rolled back here, the error simply propagates to the outer unit of work.
    """
    log = logger or BaseService.logger
    try:
        yield db.session
        if not defer_commit:
            db.session.commit()
    except ProductionError as exc:
        if not defer_commit:
            db.session.rollback()
        log.warning("%s failed: %s (%s)", operation, exc.message, exc.code)
        raise
    except Exception:
        if not defer_commit:
            db.session.rollback()
        log.exception("%s failed unexpectedly", operation)
        raise


def load_batch(batch_id, tenant_id: Optional[str] = None, for_update: bool = False):
    """Fetch a batch, scoped to ``tenant_id`` when one is given.

    ``for_update`` row-locks the batch for the rest of the transaction and
    refreshes any copy already held by the session.
    """
    try:
        batch_pk = int(batch_id)
    except (TypeError, ValueError):
        raise BatchNotFoundError(batch_id, tenant_id)

    query = ProductionBatch.query.filter(ProductionBatch.id == batch_pk)
    if tenant_id is not None:
        query = query.filter(ProductionBatch.tenant_id == tenant_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    batch = query.first()
    if batch is None:
        raise BatchNotFoundError(batch_id, tenant_id)
    return batch
