from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from typing import Callable, Dict, Optional
from functools import lru_cache
import threading
import logging

from config import Settings, load_settings
from zoom_connector.errors import ConfigError
from zoom_connector.models.schemas import RunReport
from zoom_connector.services.transfer import TransferOrchestrator, build_orchestrator
from zoom_connector.services.zoom_client import TokenProvider

router = APIRouter()
logger = logging.getLogger(__name__)

# Only one HTTP-triggered run at a time
_run_lock = threading.Lock()


class RunRequest(BaseModel):
    days: Optional[int] = None
    dry_run: bool = False


@lru_cache()
def get_settings() -> Settings:
    return load_settings()


@lru_cache()
def get_token_provider() -> TokenProvider:
    return TokenProvider(get_settings())


def get_orchestrator_factory() -> Callable[..., TransferOrchestrator]:
    return build_orchestrator


@router.get("/health", response_model=Dict[str, str])
def health():
    return {"status": "ok"}


@router.post("/transfers/run", response_model=RunReport)
def run_transfer(
    request: Optional[RunRequest] = None,
    settings: Settings = Depends(get_settings),
    token_provider: TokenProvider = Depends(get_token_provider),
    factory: Callable[..., TransferOrchestrator] = Depends(get_orchestrator_factory),
):
    """
    Run one transfer pass and return its report.

    Runs synchronously; a second request while a run is in progress gets 409.
    """
    request = request or RunRequest()
    if request.days is not None and request.days < 1:
        raise HTTPException(status_code=422, detail="days must be at least 1")

    try:
        settings.validate_for_run()
    except ConfigError as e:
        logger.error(f"Cannot start transfer: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if not _run_lock.acquire(blocking=False):
        raise HTTPException(status_code=409, detail="A transfer run is already in progress")

    try:
        orchestrator = factory(settings, token_provider=token_provider, dry_run=request.dry_run)
        return orchestrator.run(days=request.days)
    finally:
        _run_lock.release()


@router.post("/credentials/reset", response_model=Dict[str, str])
def reset_credentials(token_provider: TokenProvider = Depends(get_token_provider)):
    """Drop the cached Zoom token so the next run requests a new one."""
    token_provider.reset()
    logger.info("Zoom credentials reset")
    return {"status": "Credentials reset"}
