import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles

from app.core.config import setup_logging
from app.core.security import LoginRequired, get_current_user
from app.core.templating import BASE_DIR
from app.models import file, product, purchase, transaction, user  # noqa: F401  register tables
from app.models.database import Base, engine
from app.routers import admin, auth, checkout, dashboard, downloads, files, products

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
    yield


app = FastAPI(title="Code Shop", lifespan=lifespan)

app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

# include our routers
app.include_router(auth.router)
app.include_router(products.router)
app.include_router(files.router)
app.include_router(checkout.router)
app.include_router(downloads.router)
app.include_router(dashboard.router)
app.include_router(admin.router)


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    return RedirectResponse(url="/login", status_code=303)


@app.get("/")
def home(current_user=Depends(get_current_user)):
    if current_user:
        return RedirectResponse(url="/dashboard", status_code=303)
    return RedirectResponse(url="/products", status_code=303)
