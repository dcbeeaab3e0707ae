# app/services/order_service.py
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.models.product import Product
from app.models.purchase import Purchase, PurchaseStatus
from app.models.transaction import Transaction, TransactionStatus
from app.models.user import User

logger = logging.getLogger(__name__)


class OrderService:
    """Keeps purchases and their payment transactions in step."""

    def __init__(self, db: Session):
        self.db = db

    def owns_product(self, user_id: int, product_id: int) -> bool:
        return (
            self.db.query(Purchase)
            .filter(
                Purchase.user_id == user_id,
                Purchase.product_id == product_id,
                Purchase.status == PurchaseStatus.COMPLETED.value,
            )
            .first()
            is not None
        )

    def create_pending_purchase(self, user: User, product: Product) -> Purchase:
        purchase = Purchase(
            user_id=user.id,
            product_id=product.id,
            file_id=product.file_id,
            status=PurchaseStatus.PENDING.value,
        )
        self.db.add(purchase)
        self.db.flush()
        return purchase

    def record_transaction(self, purchase: Purchase, amount, currency: str, session_id: str) -> Transaction:
        transaction = Transaction(
            purchase_id=purchase.id,
            amount=amount,
            currency=currency,
            stripe_session_id=session_id,
            status=TransactionStatus.PENDING.value,
        )
        self.db.add(transaction)
        self.db.commit()
        return transaction

    def get_by_session(self, session_id: str) -> Transaction | None:
        if not session_id:
            return None
        return (
            self.db.query(Transaction)
            .filter(Transaction.stripe_session_id == session_id)
            .first()
        )

    def complete(self, session_id: str) -> Transaction | None:
        """Mark the transaction paid and the purchase completed. Safe to call twice."""
        transaction = self.get_by_session(session_id)
        if transaction is None:
            logger.warning("Payment completed for unknown checkout session %s", session_id)
            return None
        if transaction.is_paid:
            return transaction

        transaction.status = TransactionStatus.PAID.value
        purchase = transaction.purchase
        purchase.status = PurchaseStatus.COMPLETED.value
        purchase.purchased_at = datetime.utcnow()
        self.db.commit()

        logger.info("Purchase %s completed (transaction %s)", purchase.id, transaction.id)
        return transaction

    def close(self, session_id: str, status: TransactionStatus) -> Transaction | None:
        """Move a pending transaction to failed/cancelled and cancel its purchase."""
        transaction = self.get_by_session(session_id)
        if transaction is None:
            return None
        if transaction.status != TransactionStatus.PENDING.value:
            return transaction

        transaction.status = status.value
        transaction.purchase.status = PurchaseStatus.CANCELLED.value
        self.db.commit()

        logger.info("Transaction %s closed as %s", transaction.id, status.value)
        return transaction
