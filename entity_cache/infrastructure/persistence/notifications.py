"""Session-scoped queue of lifecycle notifications.

Repositories queue a notification for every create, update and delete in
session.info, tagged with the transaction (or savepoint) it was written
in. SQLAlchemy session events keep the queue in step with the database:

- a rollback drops the notifications written inside the rolled-back
  transaction or savepoint;
- a root transaction that ends without committing (session close) drops
  its notifications;
- a root commit marks its notifications ready.

dispatch_pending() sends ready notifications through the hooks each one
was queued with. BaseRepository.commit() calls it after every commit; a
commit made directly on the session is dispatched by the next one.
"""

from dataclasses import dataclass
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, SessionTransaction

from entity_cache.application.services.lifecycle_hooks import EntityLifecycleHooks
from entity_cache.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

_PENDING_KEY = "entity_cache.pending_notifications"
_READY_KEY = "entity_cache.ready_notifications"
_COMMITTED_KEY = "entity_cache.commit_in_progress"


@dataclass
class PendingNotification:
    """One queued lifecycle event (created, updated or deleted)."""

    event: str
    entity: Any
    original_values: dict[str, Any]
    hooks: EntityLifecycleHooks
    transaction: SessionTransaction | None


def _within(transaction: SessionTransaction | None, ancestor: SessionTransaction) -> bool:
    while transaction is not None:
        if transaction is ancestor:
            return True
        transaction = transaction.parent
    return False


def _drop_within(session: Session, transaction: SessionTransaction, reason: str) -> None:
    pending = session.info.get(_PENDING_KEY)
    if not pending:
        return
    kept = [n for n in pending if not _within(n.transaction, transaction)]
    if len(kept) != len(pending):
        logger.debug("Dropped %d lifecycle notification(s) on %s", len(pending) - len(kept), reason)
    session.info[_PENDING_KEY] = kept


def queue_notification(
    db: AsyncSession,
    event_name: str,
    entity: Any,
    original_values: dict[str, Any],
    hooks: EntityLifecycleHooks,
) -> None:
    """Queue a notification for the current transaction of db."""
    session = db.sync_session
    transaction = session.get_nested_transaction() or session.get_transaction() or session.begin()
    session.info.setdefault(_PENDING_KEY, []).append(
        PendingNotification(event_name, entity, dict(original_values), hooks, transaction)
    )


@event.listens_for(Session, "after_soft_rollback")
def _on_rollback(session: Session, previous_transaction: SessionTransaction) -> None:
    _drop_within(session, previous_transaction, "rollback")


@event.listens_for(Session, "after_commit")
def _on_commit(session: Session) -> None:
    session.info[_COMMITTED_KEY] = True


@event.listens_for(Session, "after_transaction_end")
def _on_transaction_end(session: Session, transaction: SessionTransaction) -> None:
    # Internal flush subtransactions neither commit nor roll back on their own.
    if transaction.parent is not None and not transaction.nested:
        return
    committed = session.info.pop(_COMMITTED_KEY, False)
    if transaction.parent is not None:
        return
    if not committed:
        _drop_within(session, transaction, "close without commit")
        return
    pending = session.info.get(_PENDING_KEY, [])
    ready = [n for n in pending if _within(n.transaction, transaction)]
    session.info[_PENDING_KEY] = [n for n in pending if not _within(n.transaction, transaction)]
    session.info.setdefault(_READY_KEY, []).extend(ready)


async def dispatch_pending(db: AsyncSession) -> None:
    """Send every committed notification of db through its hooks."""
    ready = db.sync_session.info.pop(_READY_KEY, [])
    for notification in ready:
        if notification.event == "deleted":
            await notification.hooks.dispatch_deleted(notification.entity)
        else:
            await notification.hooks.dispatch_committed(
                notification.entity,
                notification.event == "created",
                notification.original_values,
            )
