# order_service/api/routers/health.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from order_service.api.deps import get_resources
from order_service.resources import Resources
from order_service.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health(resources: Resources = Depends(get_resources)):
    return {
        "status": "ok",
        "service": resources.settings.service_name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
def ready(resources: Resources = Depends(get_resources)):
    checks = {}

    try:
        with resources.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        checks["database"] = "up"
    except SQLAlchemyError as e:
        logger.warning(f"Readiness: database down: {e}")
        checks["database"] = "down"

    try:
        resources.redis.ping()
        checks["redis"] = "up"
    except RedisError as e:
        logger.warning(f"Readiness: redis down: {e}")
        checks["redis"] = "down"

    ok = all(v == "up" for v in checks.values())
    return JSONResponse(
        status_code=200 if ok else 503,
        content={"status": "ready" if ok else "not_ready", "dependencies": checks},
    )
