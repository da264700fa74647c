from dataclasses import asdict

from fastapi import APIRouter, Depends

from src.app.services.csrf_token_store import ICSRFTokenStore
from src.depends import get_csrf_token_store

router = APIRouter()


@router.get("/health")
async def health_check(store: ICSRFTokenStore = Depends(get_csrf_token_store)):
    return {"status": "ok", "csrf": asdict(store.stats())}
