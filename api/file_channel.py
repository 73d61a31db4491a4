# api/file_channel.py
"""
Companion file endpoints.

GET returns the stored JSON document (``[]`` for sessions and ``null`` for
settings when no file exists). POST validates the body and atomically
replaces the file; rejected bodies leave the existing file untouched.
"""
import json
import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from config import settings
from core.exceptions import FormatError
from infrastructure.file_storage import JsonFileStorage
from services.factory import get_sessions_file_storage, get_settings_file_storage

logger = logging.getLogger(settings.LOGGER_NAME)

router = APIRouter(prefix="/api", tags=["file-channel"])


async def _json_body(request: Request) -> Any:
    body = await request.body()
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail=f"Body is not valid JSON: {e}")


async def _read(storage: JsonFileStorage, empty: Any) -> Any:
    try:
        payload = await run_in_threadpool(storage.read)
    except FormatError as e:
        logger.error(f"Companion file is corrupt: {e}")
        raise HTTPException(status_code=500, detail="Failed to read file")
    return empty if payload is JsonFileStorage.MISSING else payload


async def _write(
    request: Request,
    storage: JsonFileStorage,
    accepts: Callable[[Any], bool],
    expected: str,
) -> dict:
    payload = await _json_body(request)
    if not accepts(payload):
        raise HTTPException(status_code=400, detail=f"Expected a JSON {expected}")
    try:
        await run_in_threadpool(storage.write, payload)
    except OSError:
        raise HTTPException(status_code=500, detail="Failed to write file")
    return {"success": True}


# ---------- Sessions file ----------
@router.get("/db")
async def read_sessions_file(storage: JsonFileStorage = Depends(get_sessions_file_storage)):
    return await _read(storage, empty=[])


@router.post("/db")
async def write_sessions_file(
    request: Request,
    storage: JsonFileStorage = Depends(get_sessions_file_storage),
):
    return await _write(request, storage, lambda p: isinstance(p, list), "array")


# ---------- Settings file ----------
@router.get("/settings")
async def read_settings_file(storage: JsonFileStorage = Depends(get_settings_file_storage)):
    return await _read(storage, empty=None)


@router.post("/settings")
async def write_settings_file(
    request: Request,
    storage: JsonFileStorage = Depends(get_settings_file_storage),
):
    return await _write(request, storage, lambda p: isinstance(p, dict), "object")
