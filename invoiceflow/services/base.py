# invoiceflow/services/base.py
from __future__ import annotations

import logging

from invoiceflow.errors import ForbiddenError, NotFoundError
from invoiceflow.extensions import db

logger = logging.getLogger(__name__)


def get_owned(model, entity_id, owner_id: int, label: str):
    """
    Load ``model`` by primary key and check it belongs to ``owner_id``.

    Missing -> NotFoundError; owned by someone else -> ForbiddenError.
    """
    try:
        pk = int(entity_id)
    except (TypeError, ValueError):
        raise NotFoundError(f"{label} not found", code=f"{label.upper()}_NOT_FOUND") from None

    entity = db.session.get(model, pk)
    if entity is None:
        raise NotFoundError(f"{label} not found", code=f"{label.upper()}_NOT_FOUND")
    if entity.user_id != owner_id:
        raise ForbiddenError("Access denied - you do not own this resource")
    return entity


def commit_or_rollback(action: str) -> None:
    """Commit the session; on failure roll back, log, and re-raise."""
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("%s failed", action)
        raise
