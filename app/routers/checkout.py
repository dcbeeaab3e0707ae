import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.security import require_user
from app.models.database import get_db
from app.models.product import Product
from app.models.transaction import Transaction, TransactionStatus
from app.models.user import User
from app.services.order_service import OrderService
from app.services.payments import PaymentError, PaymentGateway, get_payment_gateway

logger = logging.getLogger(__name__)

router = APIRouter()

# Stripe events that end a checkout without payment
FAILED_EVENTS = {"checkout.session.expired", "checkout.session.async_payment_failed"}
PAID_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}


# --- start a purchase: redirect to the hosted payment page ---
@router.post("/checkout/{product_id}")
def start_checkout(
    product_id: int,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    user: User = Depends(require_user),
):
    product = db.get(Product, product_id)
    if not product or not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")

    orders = OrderService(db)
    if orders.owns_product(user.id, product.id):
        return RedirectResponse(url="/dashboard", status_code=303)

    settings = get_settings()
    purchase = orders.create_pending_purchase(user, product)

    try:
        session = gateway.create_checkout_session(
            purchase_id=purchase.id,
            user_id=user.id,
            product_id=product.id,
            title=product.title,
            description=product.file.description,
            amount=product.price,
            success_url=f"{settings.app_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.app_url}/checkout/cancel?purchase_id={purchase.id}",
        )
    except PaymentError:
        db.rollback()
        raise HTTPException(status_code=502, detail="Payment provider unavailable")

    orders.record_transaction(purchase, product.price, gateway.currency, session.id)
    logger.info("User %s started checkout for product %s (purchase %s)", user.id, product.id, purchase.id)

    return RedirectResponse(url=session.url, status_code=303)


# --- customer returns from a successful payment ---
@router.get("/checkout/success")
def checkout_success(
    session_id: str,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    user: User = Depends(require_user),
):
    orders = OrderService(db)
    transaction = orders.get_by_session(session_id)
    if not transaction or transaction.purchase.user_id != user.id:
        raise HTTPException(status_code=404, detail="Checkout not found")

    if not transaction.is_paid:
        try:
            session = gateway.retrieve_checkout_session(session_id)
        except PaymentError:
            raise HTTPException(status_code=502, detail="Could not verify payment")

        if session.payment_status != "paid":
            # Async payment methods settle later through the webhook
            return RedirectResponse(url="/transactions", status_code=303)
        orders.complete(session_id)

    return RedirectResponse(url="/dashboard", status_code=303)


# --- customer abandoned the hosted payment page ---
@router.get("/checkout/cancel")
def checkout_cancel(
    purchase_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    transaction = (
        db.query(Transaction)
        .filter(Transaction.purchase_id == purchase_id)
        .order_by(Transaction.id.desc())
        .first()
    )
    if not transaction or transaction.purchase.user_id != user.id:
        raise HTTPException(status_code=404, detail="Checkout not found")

    OrderService(db).close(transaction.stripe_session_id, TransactionStatus.CANCELLED)
    return RedirectResponse(url=f"/products/{transaction.purchase.product_id}", status_code=303)


async def raw_body(request: Request) -> bytes:
    return await request.body()


# --- payment processor callbacks ---
@router.post("/webhooks/stripe")
def stripe_webhook(
    request: Request,
    payload: bytes = Depends(raw_body),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    signature = request.headers.get("stripe-signature")

    try:
        event = gateway.construct_event(payload, signature)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("Rejected Stripe webhook: %s", e)
        raise HTTPException(status_code=400, detail="Invalid webhook")

    event_type = event["type"]
    session = event["data"]["object"]
    orders = OrderService(db)

    if event_type in PAID_EVENTS:
        if session.get("payment_status") in ("paid", "no_payment_required"):
            orders.complete(session["id"])
    elif event_type in FAILED_EVENTS:
        orders.close(session["id"], TransactionStatus.FAILED)
    else:
        logger.debug("Ignoring Stripe event %s", event_type)

    return {"received": True}
