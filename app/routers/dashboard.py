import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, Response
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.security import require_user
from app.core.templating import templates
from app.models.database import get_db
from app.models.purchase import Purchase, PurchaseStatus
from app.models.transaction import Transaction, TransactionStatus
from app.models.user import User
from app.services.receipts import build_receipt_pdf

logger = logging.getLogger(__name__)

router = APIRouter()


# --- purchased files ---
@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    purchases = (
        db.query(Purchase)
        .filter(Purchase.user_id == user.id, Purchase.status == PurchaseStatus.COMPLETED.value)
        .order_by(Purchase.purchased_at.desc())
        .all()
    )

    total_spent = (
        db.query(func.sum(Transaction.amount))
        .select_from(Transaction)
        .join(Purchase)
        .filter(Purchase.user_id == user.id, Transaction.status == TransactionStatus.PAID.value)
        .scalar()
    ) or 0

    stats = {"purchases": len(purchases), "total_spent": total_spent}
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {"purchases": purchases, "stats": stats, "user": user},
    )


# --- transaction history ---
@router.get("/transactions", response_class=HTMLResponse)
def transaction_history(
    request: Request,
    status: str = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    query = db.query(Transaction).join(Purchase).filter(Purchase.user_id == user.id)
    if status:
        query = query.filter(Transaction.status == status)
    transactions = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()

    return templates.TemplateResponse(
        request,
        "transactions.html",
        {
            "transactions": transactions,
            "status_filter": status or "",
            "statuses": [s.value for s in TransactionStatus],
            "user": user,
        },
    )


# --- PDF receipt for a paid transaction ---
@router.get("/transactions/{transaction_id}/receipt")
def transaction_receipt(
    transaction_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    transaction = db.get(Transaction, transaction_id)
    if (
        transaction is None
        or not transaction.is_paid
        or (transaction.purchase.user_id != user.id and not user.is_admin)
    ):
        raise HTTPException(status_code=404, detail="Receipt not found")

    pdf = build_receipt_pdf(transaction)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="receipt-{transaction.id}.pdf"'},
    )
