import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.security import SESSION_COOKIE, hash_password, sign_value, verify_password
from app.core.templating import templates
from app.models.database import get_db
from app.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/signup", response_class=HTMLResponse)
def signup_page(request: Request):
    return templates.TemplateResponse(request, "signup.html", {})


@router.post("/signup")
def signup(request: Request, username: str = Form(...), password: str = Form(...), db: Session = Depends(get_db)):
    username = username.strip()
    if not username or len(password) < 6:
        return templates.TemplateResponse(
            request,
            "signup.html",
            {"error": "Username is required and password must be at least 6 characters"},
            status_code=400,
        )

    # Check if user exists
    existing_user = db.query(User).filter(User.username == username).first()
    if existing_user:
        return templates.TemplateResponse(
            request, "signup.html", {"error": "Username already exists"}, status_code=400
        )

    is_admin = username in get_settings().admin_username_set
    new_user = User(username=username, password=hash_password(password), is_admin=is_admin)
    db.add(new_user)
    db.commit()
    logger.info("New %s account %s", "admin" if is_admin else "customer", username)

    return RedirectResponse(url="/login", status_code=303)


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request):
    return templates.TemplateResponse(request, "login.html", {})


@router.post("/login")
def login(request: Request, username: str = Form(...), password: str = Form(...), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.username == username.strip()).first()

    if not user or not verify_password(user.password, password):
        return templates.TemplateResponse(
            request, "login.html", {"error": "Invalid credentials"}, status_code=400
        )

    # login success → set a signed cookie
    response = RedirectResponse(url="/", status_code=303)
    response.set_cookie(SESSION_COOKIE, sign_value(str(user.id)), httponly=True, samesite="lax")
    return response


@router.post("/logout")
def logout():
    response = RedirectResponse(url="/login", status_code=303)
    response.delete_cookie(SESSION_COOKIE)
    return response
