# ordermgr/routers/health.py
from fastapi import APIRouter, Depends

from ordermgr.storage.db import Database, get_database

router = APIRouter(tags=["Health"])


@router.get("/health")
def health(database: Database = Depends(get_database)):
    """Verifica que el pool entregue una conexion valida (503 si no)."""
    database.ping()
    return {"status": "ok"}
