import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse
from pymongo.errors import ConfigurationError, PyMongoError

from .config import Settings, get_settings
from .database import open_database
from .mongo_commands import SUPPORTED_COMMANDS
from .runner import execute
from .schemas import ShellRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def root():
    return {
        "message": "MongoDB Shell API",
        "version": "1.0.0",
        "supported_commands": SUPPORTED_COMMANDS,
    }


@router.get("/health")
async def health_check():
    return {"status": "healthy"}


@router.post("/api/mongodb/shell")
def shell(request: ShellRequest, authorization: Optional[str] = Header(None),
          settings: Settings = Depends(get_settings)):
    if settings.token and authorization != f"Bearer {settings.token}":
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not request.connection_string or not request.database_name or not request.command:
        raise HTTPException(
            status_code=400,
            detail="Connection string, database name, and command are required",
        )

    try:
        with open_database(request.connection_string, request.database_name, settings) as db:
            outcome = execute(request.command, db, request.collection_name)
    except ConfigurationError as e:
        logger.error(f"Invalid MongoDB configuration: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid connection string: {e}")
    except PyMongoError as e:
        logger.error(f"MongoDB connection failed: {e}")
        return JSONResponse(status_code=503, content={"error": f"MongoDB database unavailable: {e}"})

    if "error" in outcome:
        return JSONResponse(status_code=500, content=outcome)
    return outcome
