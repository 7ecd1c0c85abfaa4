from fastapi import HTTPException

from app.core.config import get_settings


def ensure_sales_assistant_enabled() -> None:
    settings = get_settings()
    if not settings.enable_sales_assistant:
        raise HTTPException(status_code=404, detail="Not found")
