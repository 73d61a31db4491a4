# utils/common.py
"""Upload checks, content types and local paths"""
import logging
from pathlib import Path
from typing import Optional

from fastapi import HTTPException, UploadFile

# config.py imports this module for its defaults, so settings is only
# looked up inside the functions below

_PDF_MAGIC = b"%PDF"


def _settings():
    from config import settings
    return settings


# ============= Local Paths =============

def get_project_root() -> str:
    """Absolute path of the directory holding config.py."""
    return str(Path(__file__).resolve().parent.parent)


def get_log_file_path(filename: str = "credit_insight.log") -> str:
    """Log file under <project>/log, creating the directory on first use."""
    log_dir = Path(get_project_root()) / "log"
    log_dir.mkdir(parents=True, exist_ok=True)
    return str(log_dir / filename)


# ============= Upload Checks =============

def get_file_extension(filename: str) -> str:
    """Lowercase extension without the dot ("" when there is none)."""
    return Path(filename).suffix[1:].lower()


def get_file_stem(filename: str) -> str:
    """File name without its final extension."""
    return Path(filename).stem


def validate_uploaded_file(file: UploadFile) -> str:
    """Reject uploads by name and declared size. Returns the extension."""
    settings = _settings()
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    extension = get_file_extension(file.filename)
    if extension not in settings.DOCUMENT_EXTENSIONS:
        allowed = ", ".join(settings.DOCUMENT_EXTENSIONS)
        raise HTTPException(status_code=400, detail=f"Unsupported file type '.{extension}'. Allowed: {allowed}")

    check_file_size(file.size)
    return extension


def check_file_size(size: Optional[int]) -> None:
    max_size = _settings().MAX_FILE_SIZE
    if size and size > max_size:
        raise HTTPException(status_code=413, detail=f"File too large. Max size: {max_size // 1024 // 1024}MB")


def validate_file_content(content: bytes, filename: str) -> None:
    """Magic number check for PDFs; every document must have some content."""
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if get_file_extension(filename) == "pdf" and not content[:16].startswith(_PDF_MAGIC):
        raise HTTPException(status_code=400, detail="Invalid PDF file")

    logging.getLogger(_settings().LOGGER_NAME).info(f"Validated content of '{filename}' ({len(content)} bytes)")


def normalize_mime_type(filename: str, declared: str = "") -> str:
    """
    Resolve the content type used for a stored document.

    Browsers report .mhtml as multipart/related (or nothing at all), so
    the extension wins for the formats we know how to read.
    """
    extension = get_file_extension(filename)
    if extension == "txt":
        return "text/plain"
    if extension in ("html", "htm", "mhtml"):
        return "text/html"
    if extension == "pdf":
        return "application/pdf"
    if not declared or declared == "multipart/related":
        return "text/html"
    return declared
