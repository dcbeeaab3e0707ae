import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from app.core.security import create_download_token, require_user, verify_download_token
from app.models.database import get_db
from app.models.purchase import Purchase
from app.models.user import User
from app.routers.files import stream_file
from app.services.storage import Storage, get_storage

logger = logging.getLogger(__name__)

router = APIRouter()


def _can_download(purchase: Purchase | None, user: User) -> bool:
    if purchase is None:
        return False
    if user.is_admin:
        return True
    return purchase.user_id == user.id and purchase.is_completed


# --- issue a short-lived signed link for a purchase ---
@router.get("/purchases/{purchase_id}/download")
def download_link(
    purchase_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    purchase = db.get(Purchase, purchase_id)
    if purchase is None:
        raise HTTPException(status_code=404, detail="Purchase not found")
    if not _can_download(purchase, user):
        logger.warning("User %s asked for a link to purchase %s they cannot download", user.id, purchase_id)
        raise HTTPException(status_code=403, detail="Not allowed to download this file")

    token = create_download_token(purchase.id, user.id)
    logger.info("Issued download link for purchase %s to user %s", purchase.id, user.id)
    return RedirectResponse(url=f"/download/{token}", status_code=303)


# --- serve the file behind a signed link ---
@router.get("/download/{token}")
def download(
    token: str,
    db: Session = Depends(get_db),
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    payload = verify_download_token(token)
    if payload is None:
        raise HTTPException(status_code=403, detail="Download link is invalid or has expired")

    purchase_id, user_id = payload
    purchase = db.get(Purchase, purchase_id)
    if user_id != user.id or not _can_download(purchase, user):
        raise HTTPException(status_code=403, detail="Not allowed to download this file")

    return stream_file(purchase.file, storage)
