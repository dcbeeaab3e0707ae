import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.security import require_admin
from app.core.templating import templates
from app.models.database import get_db
from app.models.file import CodeFile
from app.models.product import Product
from app.models.transaction import Transaction, TransactionStatus
from app.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin")


@router.get("", response_class=HTMLResponse)
def overview(
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    revenue = (
        db.query(func.sum(Transaction.amount))
        .filter(Transaction.status == TransactionStatus.PAID.value)
        .scalar()
    ) or 0

    stats = {
        "users": db.query(User).count(),
        "files": db.query(CodeFile).count(),
        "products": db.query(Product).count(),
        "paid_transactions": db.query(Transaction).filter(Transaction.status == TransactionStatus.PAID.value).count(),
        "revenue": revenue,
    }
    recent = db.query(Transaction).order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(10).all()

    return templates.TemplateResponse(
        request,
        "admin/overview.html",
        {"stats": stats, "recent": recent, "user": admin},
    )


@router.get("/users", response_class=HTMLResponse)
def list_users(
    request: Request,
    error: str = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return templates.TemplateResponse(
        request,
        "admin/users.html",
        {"users": users, "error": error, "user": admin},
    )


@router.post("/users/{user_id}/toggle-admin")
def toggle_admin(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    target = db.get(User, user_id)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    if target.id == admin.id:
        return RedirectResponse(url=f"/admin/users?error={quote('You cannot change your own role')}", status_code=303)

    target.is_admin = not target.is_admin
    db.commit()
    logger.info("User %s set is_admin=%s for user %s", admin.id, target.is_admin, target.id)

    return RedirectResponse(url="/admin/users", status_code=303)


@router.get("/transactions", response_class=HTMLResponse)
def all_transactions(
    request: Request,
    status: str = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = db.query(Transaction)
    if status:
        query = query.filter(Transaction.status == status)
    transactions = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()

    return templates.TemplateResponse(
        request,
        "admin/transactions.html",
        {
            "transactions": transactions,
            "status_filter": status or "",
            "statuses": [s.value for s in TransactionStatus],
            "user": admin,
        },
    )
