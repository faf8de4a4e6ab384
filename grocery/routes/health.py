import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from sqlmodel import Session

from grocery.database import get_session
from grocery.utils.response import api_response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def health_check(session: Session = Depends(get_session)):
    db_status = "ok"

    try:
        session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        db_status = "failed"

    return api_response(
        "Service is healthy" if db_status == "ok" else "Service is degraded",
        {
            "database": db_status,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
