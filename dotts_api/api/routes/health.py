"""
Health check endpoint for deployment monitoring.
"""
import logging

from fastapi import APIRouter, Depends

from dotts_api.api.dependencies import get_store
from dotts_api.core.errors import StoreUnavailableError
from dotts_api.db.store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Health"])


@router.get("/health")
def health_check(store: RecordStore = Depends(get_store)):
    """
    Returns 200 while the process is up; database reports connectivity.
    """
    try:
        store.ping()
        db_status = "connected"
    except StoreUnavailableError:
        db_status = "error"

    return {"ok": True, "database": db_status}
