# api/schemas.py
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from core.domain import CamelModel, DealSession
from core.enums import AnalysisState, BenchmarkState, ErrorCode, ProcessingStatus, TermCategory


class SessionSummary(CamelModel):
    """Dashboard row: a session without its document bytes."""
    id: str
    borrower_name: str
    file_name: str
    file_type: str
    file_size: int
    last_modified: datetime
    analysis: AnalysisState
    benchmarked_profiles: List[str]

    @classmethod
    def from_session(cls, session: DealSession) -> "SessionSummary":
        return cls(
            id=session.id,
            borrower_name=session.borrower_name,
            file_name=session.file.name,
            file_type=session.file.mime_type,
            file_size=session.file.size,
            last_modified=session.last_modified,
            analysis=session.analysis_state,
            benchmarked_profiles=sorted(session.benchmark_results),
        )

class SessionsListResponse(CamelModel):
    sessions: List[SessionSummary]

class RenameSessionRequest(CamelModel):
    borrower_name: str = Field(min_length=1, max_length=200)

class AnalyzeRequest(CamelModel):
    # Defaults to the active profile
    profile_id: Optional[str] = None

class RebenchmarkRequest(CamelModel):
    session_ids: List[str] = Field(min_length=1)
    profile_id: Optional[str] = None

class RebenchmarkResponse(CamelModel):
    profile_id: str
    updated: List[str]
    failed: Dict[str, str]

class ChatRequest(CamelModel):
    message: str = Field(min_length=1, max_length=4000)

class AnalysisStatusResponse(CamelModel):
    session_id: str
    profile_id: str
    analysis: AnalysisState
    benchmark: BenchmarkState
    variance_counts: Dict[str, int]
    status: Optional[ProcessingStatus] = None
    current_step: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None

class ImportResponse(CamelModel):
    status: str
    imported: int

class DeleteResponse(CamelModel):
    status: str
    message: str

class ErrorResponse(CamelModel):
    detail: str
    error_code: ErrorCode

# ---------- Settings ----------

class TermRequest(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    category: TermCategory = TermCategory.GENERAL

class TermUpdateRequest(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[TermCategory] = None

class ProfileRequest(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    data: Dict[str, str] = Field(default_factory=dict)

class CloneProfileRequest(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)

class RenameProfileRequest(CamelModel):
    name: str = Field(min_length=1, max_length=200)

class BenchmarkValueRequest(CamelModel):
    value: str

class ActiveProfileRequest(CamelModel):
    profile_id: str
