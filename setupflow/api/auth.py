from fastapi import Header, HTTPException
from setupflow.settings import settings


def require_api_key(x_api_key: str = Header(default="", alias="x-api-key")):
    """Workflow routes are open until API_KEY is set; then x-api-key must match it."""
    if not settings.API_KEY:
        return
    if x_api_key != settings.API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")
