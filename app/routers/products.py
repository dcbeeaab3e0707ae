import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.core.security import get_current_user, require_admin
from app.core.templating import templates
from app.models.database import get_db
from app.models.file import CodeFile
from app.models.product import Product
from app.models.purchase import Purchase
from app.models.user import User
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_product_or_404(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


# --- public catalogue ---
@router.get("/products", response_class=HTMLResponse)
def list_products(
    request: Request,
    search: str = None,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_current_user),
):
    query = db.query(Product).filter(Product.is_active.is_(True))
    if search and search.strip():
        query = query.filter(Product.title.ilike(f"%{search.strip()}%"))
    products = query.order_by(Product.created_at.desc()).all()

    return templates.TemplateResponse(
        request,
        "products.html",
        {"products": products, "search_query": search or "", "user": user},
    )


@router.get("/products/{product_id}", response_class=HTMLResponse)
def product_detail(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_current_user),
):
    product = _get_product_or_404(db, product_id)
    if not product.is_active and not (user and user.is_admin):
        raise HTTPException(status_code=404, detail="Product not found")

    owned = bool(user) and OrderService(db).owns_product(user.id, product.id)
    return templates.TemplateResponse(
        request,
        "product_detail.html",
        {"product": product, "user": user, "owned": owned},
    )


# --- admin product management ---
@router.get("/admin/products", response_class=HTMLResponse)
def admin_products(
    request: Request,
    error: str = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    products = db.query(Product).order_by(Product.created_at.desc()).all()
    files = db.query(CodeFile).order_by(CodeFile.name).all()
    return templates.TemplateResponse(
        request,
        "admin/products.html",
        {"products": products, "files": files, "error": error, "user": admin},
    )


@router.post("/admin/products")
def create_product(
    title: str = Form(...),
    file_id: int = Form(...),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    title = title.strip()
    if not title:
        return RedirectResponse(url=f"/admin/products?error={quote('Title is required')}", status_code=303)
    if not db.get(CodeFile, file_id):
        return RedirectResponse(url=f"/admin/products?error={quote('Unknown file')}", status_code=303)

    product = Product(title=title, file_id=file_id, is_active=True)
    db.add(product)
    db.commit()
    logger.info("User %s created product %s for file %s", admin.id, product.id, file_id)

    return RedirectResponse(url="/admin/products", status_code=303)


@router.post("/admin/products/{product_id}/edit")
def edit_product(
    product_id: int,
    title: str = Form(...),
    file_id: int = Form(...),
    is_active: bool = Form(False),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    product = _get_product_or_404(db, product_id)

    title = title.strip()
    if not title:
        return RedirectResponse(url=f"/admin/products?error={quote('Title is required')}", status_code=303)
    if not db.get(CodeFile, file_id):
        return RedirectResponse(url=f"/admin/products?error={quote('Unknown file')}", status_code=303)

    product.title = title
    product.file_id = file_id
    product.is_active = is_active
    db.commit()

    return RedirectResponse(url="/admin/products", status_code=303)


@router.post("/admin/products/{product_id}/delete")
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    product = _get_product_or_404(db, product_id)

    # Purchases keep pointing at the product, so it is only hidden
    if db.query(Purchase).filter(Purchase.product_id == product.id).count():
        product.is_active = False
        db.commit()
        logger.info("User %s deactivated product %s (has purchases)", admin.id, product_id)
    else:
        db.delete(product)
        db.commit()
        logger.info("User %s deleted product %s", admin.id, product_id)

    return RedirectResponse(url="/admin/products", status_code=303)
