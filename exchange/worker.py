"""Background task definitions for asynchronous processing."""

from celery import Task
from loguru import logger

from exchange.core.celery_app import celery_app


@celery_app.task(name="audit_log_transaction", bind=True)
def audit_log_transaction(
    self: Task,
    transaction_id: str,
    data: dict
) -> dict:
    """
    Write a committed transaction status change to the audit log.

    Queued by the API only after the database transaction that changed
    the status has committed.

    Args:
        transaction_id: UUID of the transaction
        data: Transaction data dictionary with keys:
            - user_id: UUID string
            - wallet_id: UUID string
            - type: "deposit" or "withdrawal"
            - currency: Currency code
            - amount: Decimal string
            - status: New status string
            - rejection_reason: Reason string or None
            - updated_at: ISO timestamp string

    Returns:
        dict: Result with success status and message
    """
    message = (
        f"Audit log for transaction {transaction_id}: "
        f"{data.get('type')} {data.get('amount')} {data.get('currency')} "
        f"-> {data.get('status')}"
    )
    logger.bind(task_id=self.request.id, audit=data).info(message)

    return {
        "success": True,
        "message": message,
        "task_id": self.request.id,
        "transaction_id": transaction_id
    }
