"""Post-commit side effects shared by the endpoints.

Everything here runs only after the database transaction that created
or changed a transaction has committed.
"""

from loguru import logger

from exchange.models.transaction import Transaction
from exchange.services.notifications import NotificationRelay, TransactionEvent
from exchange.worker import audit_log_transaction


def audit_payload(transaction: Transaction) -> dict:
    """JSON-serializable audit record for a transaction."""
    event = TransactionEvent.from_transaction(transaction)
    return {
        **event.model_dump(mode="json"),
        "wallet_id": str(transaction.wallet_id),
    }


def announce_new_pending(relay: NotificationRelay, transaction: Transaction) -> None:
    """Tell connected admins about a freshly submitted request."""
    relay.notify_new_pending_transaction(TransactionEvent.from_transaction(transaction))


def announce_status_change(relay: NotificationRelay, transaction: Transaction) -> None:
    """Notify the owner and queue the audit-log task for a committed transition."""
    relay.notify_status_change(
        transaction.user_id,
        TransactionEvent.from_transaction(transaction),
    )
    try:
        audit_log_transaction.delay(
            transaction_id=str(transaction.id),
            data=audit_payload(transaction),
        )
    except Exception:
        # Transition is already committed; audit queueing is best-effort
        logger.exception(f"Could not queue audit log for transaction {transaction.id}")
