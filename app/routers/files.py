import io
import logging
import time
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from pathlib import PurePath
from urllib.parse import quote

from fastapi import APIRouter, Depends, File as FastAPIFile, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse, StreamingResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.security import require_admin
from app.core.templating import templates
from app.models.database import get_db
from app.models.file import CodeFile
from app.models.product import Product
from app.models.purchase import Purchase
from app.models.user import User
from app.services.storage import Storage, StorageError, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/files")


class UploadRejected(ValueError):
    pass


def parse_price(raw: str) -> Decimal:
    try:
        price = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise ValueError("Price must be a number") from None
    if not price.is_finite():
        raise ValueError("Price must be a number")
    price = price.quantize(Decimal("0.01"))
    if price < 0:
        raise ValueError("Price cannot be negative")
    return price


def validate_upload(filename: str | None, size: int):
    settings = get_settings()
    if not filename:
        raise UploadRejected("No file selected")

    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if extension not in settings.allowed_extension_set:
        allowed = ", ".join(sorted(settings.allowed_extension_set))
        raise UploadRejected(f"File type not allowed (allowed: {allowed})")
    if size == 0:
        raise UploadRejected("File is empty")
    if size > settings.max_upload_bytes:
        raise UploadRejected(f"File is larger than {settings.max_upload_size_mb} MB")


def _render_files(request: Request, db: Session, admin: User, search: str | None = None, error: str | None = None, status_code: int = 200):
    all_files_query = db.query(CodeFile)

    # Stats are only shown when not searching
    stats = {}
    if not search or not search.strip():
        total_storage = all_files_query.with_entities(func.sum(CodeFile.size)).scalar() or 0
        seven_days_ago = datetime.utcnow() - timedelta(days=7)
        stats = {
            "total_files": all_files_query.count(),
            "total_storage": total_storage,
            "recent_files": all_files_query.filter(CodeFile.uploaded_at >= seven_days_ago).count(),
        }

    query = all_files_query
    if search and search.strip():
        query = query.filter(CodeFile.name.ilike(f"%{search.strip()}%"))

    files = query.order_by(CodeFile.uploaded_at.desc()).all()

    return templates.TemplateResponse(
        request,
        "admin/files.html",
        {
            "files": files,
            "search_query": search or "",
            "stats": stats,
            "error": error,
            "allowed_extensions": sorted(get_settings().allowed_extension_set),
            "user": admin,
        },
        status_code=status_code,
    )


def _get_file_or_404(db: Session, file_id: int) -> CodeFile:
    file = db.get(CodeFile, file_id)
    if not file:
        raise HTTPException(status_code=404, detail="File not found")
    return file


# --- list uploaded files ---
@router.get("", response_class=HTMLResponse)
def list_files(
    request: Request,
    search: str = None,
    error: str = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return _render_files(request, db, admin, search=search, error=error)


# --- upload a new code file ---
@router.post("")
async def upload_file(
    request: Request,
    upload: UploadFile = FastAPIFile(...),
    name: str = Form(""),
    description: str = Form(""),
    price: str = Form("0"),
    db: Session = Depends(get_db),
    storage: Storage = Depends(get_storage),
    admin: User = Depends(require_admin),
):
    # One byte past the limit is enough to know the upload is too large
    content = await upload.read(get_settings().max_upload_bytes + 1)

    try:
        validate_upload(upload.filename, len(content))
        parsed_price = parse_price(price)
    except ValueError as e:
        logger.info("Rejected upload %r from user %s: %s", upload.filename, admin.id, e)
        return _render_files(request, db, admin, error=str(e), status_code=400)

    original_name = PurePath(upload.filename).name
    # Unique object key, grouped per uploader
    key = f"files/{admin.id}/{int(time.time())}_{original_name}"
    content_type = upload.content_type or "application/octet-stream"

    try:
        storage.put(key, content, content_type)
    except StorageError:
        raise HTTPException(status_code=502, detail="Could not store file")

    meta = CodeFile(
        name=name.strip() or original_name,
        description=description.strip() or None,
        price=parsed_price,
        original_name=original_name,
        stored_name=key,
        path=key,
        size=len(content),
        content_type=content_type,
        uploader_id=admin.id,
    )
    db.add(meta)
    db.commit()
    logger.info("User %s uploaded %s (%d bytes) as file %s", admin.id, original_name, meta.size, meta.id)

    return RedirectResponse(url="/admin/files", status_code=303)


# --- update name, description and price ---
@router.post("/{file_id}/edit")
def edit_file(
    file_id: int,
    name: str = Form(...),
    description: str = Form(""),
    price: str = Form(...),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    file = _get_file_or_404(db, file_id)

    name = name.strip()
    if not name:
        return RedirectResponse(url=f"/admin/files?error={quote('Invalid file name')}", status_code=303)
    try:
        parsed_price = parse_price(price)
    except ValueError as e:
        return RedirectResponse(url=f"/admin/files?error={quote(str(e))}", status_code=303)

    # The object key in the bucket stays the same
    file.name = name
    file.description = description.strip() or None
    file.price = parsed_price
    db.commit()

    return RedirectResponse(url="/admin/files", status_code=303)


# --- delete a file ---
@router.post("/{file_id}/delete")
def delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    storage: Storage = Depends(get_storage),
    admin: User = Depends(require_admin),
):
    file = _get_file_or_404(db, file_id)

    if db.query(Product).filter(Product.file_id == file.id).count():
        message = "File is still used by a product; delete the product first"
        return RedirectResponse(url=f"/admin/files?error={quote(message)}", status_code=303)

    # Purchases pin the file they paid for, even after the product moves to another file
    if db.query(Purchase).filter(Purchase.file_id == file.id).count():
        message = "File has been purchased and must stay available to its buyers"
        return RedirectResponse(url=f"/admin/files?error={quote(message)}", status_code=303)

    try:
        storage.delete(file.stored_name)
    except StorageError:
        # Record is removed even when the object is not
        logger.warning("Deleting record for file %s although its object could not be removed", file.id)

    db.delete(file)
    db.commit()
    logger.info("User %s deleted file %s", admin.id, file_id)

    return RedirectResponse(url="/admin/files", status_code=303)


# --- admin download, no purchase needed ---
@router.get("/{file_id}/download")
def download_file(
    file_id: int,
    db: Session = Depends(get_db),
    storage: Storage = Depends(get_storage),
    admin: User = Depends(require_admin),
):
    file = _get_file_or_404(db, file_id)
    return stream_file(file, storage)


def stream_file(file: CodeFile, storage: Storage) -> StreamingResponse:
    try:
        file_bytes, content_type = storage.get(file.stored_name)
    except StorageError:
        raise HTTPException(status_code=404, detail="File missing in storage")

    return StreamingResponse(
        io.BytesIO(file_bytes),
        media_type=content_type,
        headers={"Content-Disposition": content_disposition(file.original_name)},
    )


def content_disposition(filename: str) -> str:
    # Plain ASCII fallback plus RFC 5987 form for non-ASCII names
    fallback = filename.encode("ascii", "replace").decode().replace('"', "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"
