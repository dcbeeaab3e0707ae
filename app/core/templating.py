# app/core/templating.py
from pathlib import Path

from fastapi.templating import Jinja2Templates

BASE_DIR = Path(__file__).resolve().parent.parent

templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def format_size(num_bytes) -> str:
    size = float(num_bytes or 0)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024


def format_money(amount, currency: str = "usd") -> str:
    return f"{float(amount or 0):.2f} {currency.upper()}"


templates.env.filters["filesize"] = format_size
templates.env.filters["money"] = format_money
