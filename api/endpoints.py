# api/endpoints.py
"""
API endpoints for credit agreement analysis.

SECURITY NOTE:
==================================
These endpoints have NO AUTHENTICATION. The service is meant to run
locally for a single analyst (one local store, one companion file).
==================================
"""
import base64
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile, status

from api.schemas import (
    ActiveProfileRequest,
    AnalysisStatusResponse,
    AnalyzeRequest,
    BenchmarkValueRequest,
    ChatRequest,
    CloneProfileRequest,
    DeleteResponse,
    ImportResponse,
    ProfileRequest,
    RebenchmarkRequest,
    RebenchmarkResponse,
    RenameProfileRequest,
    RenameSessionRequest,
    SessionsListResponse,
    SessionSummary,
    TermRequest,
    TermUpdateRequest,
)
from config import settings
from core.benchmark import profile_for, require_profile, variance_counts
from core.domain import AppSettings, BenchmarkProfile, DealSession, UploadedFile
from services.factory import get_session_orchestrator, get_settings_service
from services.reporting import csv_filename, session_to_csv
from services.session_service import SessionOrchestrator
from services.settings_service import SettingsService
from utils.common import check_file_size, normalize_mime_type, validate_file_content, validate_uploaded_file

router = APIRouter()


def _resolve_profile(app_settings: AppSettings, profile_id: Optional[str]) -> BenchmarkProfile:
    """Explicit ids must exist; no id means the active profile."""
    if profile_id:
        return require_profile(app_settings.benchmark_profiles, profile_id)
    return profile_for(app_settings.benchmark_profiles, app_settings.active_profile_id)


# ---------- Sessions ----------
@router.get("/sessions", response_model=SessionsListResponse)
async def list_sessions(
    orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
) -> SessionsListResponse:
    sessions = await orchestrator.list_sessions()
    return SessionsListResponse(sessions=[SessionSummary.from_session(s) for s in sessions])


@router.post("/sessions", response_model=DealSession, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
) -> DealSession:
    validate_uploaded_file(file)
    content = await file.read()
    check_file_size(len(content))
    validate_file_content(content, file.filename)

    uploaded = UploadedFile(
        name=file.filename,
        type=normalize_mime_type(file.filename, file.content_type or ""),
        data=base64.b64encode(content).decode("ascii"),
        size=len(content),
    )
    return await orchestrator.create_session(uploaded)


@router.post("/sessions/rebenchmark", response_model=RebenchmarkResponse)
async def rebenchmark_sessions(
    request: RebenchmarkRequest,
    orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
    settings_service: SettingsService = Depends(get_settings_service),
) -> RebenchmarkResponse:
    profile = _resolve_profile(await settings_service.load(), request.profile_id)
    report = await orchestrator.rebenchmark(request.session_ids, profile)
    return RebenchmarkResponse(
        profile_id=report.profile_id, updated=report.updated, failed=report.failed
    )


@router.get("/sessions/{session_id}", response_model=DealSession)
async def get_session(
    session_id: str,
    orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
) -> DealSession:
    return await orchestrator.get_session(session_id)


@router.patch("/sessions/{session_id}", response_model=DealSession)
async def rename_session(
    session_id: str,
    request: RenameSessionRequest,
    orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
) -> DealSession:
    return await orchestrator.rename_borrower(session_id, request.borrower_name)


@router.delete("/sessions/{session_id}", response_model=DeleteResponse)
async def delete_session(
    session_id: str,
    orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
) -> DeleteResponse:
    await orchestrator.delete_session(session_id)
    return DeleteResponse(status="success", message="Session deleted successfully")


# ---------- Analysis ----------
@router.post("/sessions/{session_id}/analyze", response_model=DealSession)
async def analyze_session(
    session_id: str,
    request: Optional[AnalyzeRequest] = None,
    orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
    settings_service: SettingsService = Depends(get_settings_service),
) -> DealSession:
    app_settings = await settings_service.load()
    profile_id = request.profile_id if request else None
    profile = _resolve_profile(app_settings, profile_id)
    return await orchestrator.run_analysis(session_id, app_settings.terms, profile)


@router.get("/sessions/{session_id}/analysis-status", response_model=AnalysisStatusResponse)
async def get_analysis_status(
    session_id: str,
    profile_id: Optional[str] = None,
    orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
    settings_service: SettingsService = Depends(get_settings_service),
) -> AnalysisStatusResponse:
    """Derived analysis/benchmark state plus live progress of a running analysis."""
    session = await orchestrator.get_session(session_id)
    profile = _resolve_profile(await settings_service.load(), profile_id)
    analysis = orchestrator.analysis_status(session, profile.id)
    progress = analysis.progress or {}
    return AnalysisStatusResponse(
        session_id=session.id,
        profile_id=profile.id,
        analysis=analysis.analysis,
        benchmark=analysis.benchmark,
        variance_counts=variance_counts(session, profile.id),
        status=progress.get("status"),
        current_step=progress.get("current_step"),
        error=progress.get("error"),
        error_code=progress.get("error_code"),
    )


@router.post("/sessions/{session_id}/chat", response_model=DealSession)
async def chat_with_document(
    session_id: str,
    request: ChatRequest,
    orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
) -> DealSession:
    return await orchestrator.send_chat_message(session_id, request.message.strip())


@router.post("/sessions/{session_id}/financials", response_model=DealSession)
async def refresh_financials(
    session_id: str,
    orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
) -> DealSession:
    return await orchestrator.refresh_financials(session_id)


@router.get("/sessions/{session_id}/export.csv")
async def export_session_csv(
    session_id: str,
    profile_id: Optional[str] = None,
    orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
    settings_service: SettingsService = Depends(get_settings_service),
) -> Response:
    session = await orchestrator.get_session(session_id)
    app_settings = await settings_service.load()
    profile = _resolve_profile(app_settings, profile_id)
    return Response(
        content=session_to_csv(session, profile.id, app_settings.terms),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{csv_filename(session)}"'},
    )


# ---------- Backup ----------
@router.get("/backup")
async def export_backup(
    orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
) -> Response:
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    return Response(
        content=await orchestrator.export_backup(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="credit_insight_backup_{stamp}.json"'},
    )


@router.post("/backup", response_model=ImportResponse)
async def import_backup(
    request: Request,
    orchestrator: SessionOrchestrator = Depends(get_session_orchestrator),
) -> ImportResponse:
    """Merge a backup file (raw JSON body) into the local store."""
    imported = await orchestrator.import_backup(await request.body())
    return ImportResponse(status="success", imported=imported)


# ---------- Settings ----------
@router.get("/settings", response_model=AppSettings)
async def get_settings(
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.load()


@router.put("/settings", response_model=AppSettings)
async def replace_settings(
    app_settings: AppSettings,
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.save(app_settings)


@router.put("/settings/active-profile", response_model=AppSettings)
async def set_active_profile(
    request: ActiveProfileRequest,
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.set_active_profile(request.profile_id)


# ---------- Terms ----------
@router.post("/settings/terms", response_model=AppSettings, status_code=status.HTTP_201_CREATED)
async def add_term(
    request: TermRequest,
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.add_term(request.name, request.description, request.category)


@router.post("/settings/terms/reset", response_model=AppSettings)
async def reset_terms(
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.reset_terms()


@router.patch("/settings/terms/{term_id}", response_model=AppSettings)
async def update_term(
    term_id: str,
    request: TermUpdateRequest,
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.update_term(
        term_id, name=request.name, description=request.description, category=request.category
    )


@router.delete("/settings/terms/{term_id}", response_model=AppSettings)
async def delete_term(
    term_id: str,
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.delete_term(term_id)


# ---------- Benchmark profiles ----------
@router.post("/settings/profiles", response_model=AppSettings, status_code=status.HTTP_201_CREATED)
async def create_profile(
    request: ProfileRequest,
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.create_profile(request.name, request.data)


@router.post("/settings/profiles/{profile_id}/clone", response_model=AppSettings, status_code=status.HTTP_201_CREATED)
async def clone_profile(
    profile_id: str,
    request: Optional[CloneProfileRequest] = None,
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.clone_profile(profile_id, request.name if request else None)


@router.patch("/settings/profiles/{profile_id}", response_model=AppSettings)
async def rename_profile(
    profile_id: str,
    request: RenameProfileRequest,
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.rename_profile(profile_id, request.name)


@router.post("/settings/profiles/{profile_id}/reset", response_model=AppSettings)
async def reset_profile(
    profile_id: str,
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.reset_profile_data(profile_id)


@router.delete("/settings/profiles/{profile_id}", response_model=AppSettings)
async def delete_profile(
    profile_id: str,
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.delete_profile(profile_id)


# Term names may contain "/" (e.g. "Interest Rate / Margin")
@router.put("/settings/profiles/{profile_id}/benchmarks/{term:path}", response_model=AppSettings)
async def set_benchmark_value(
    profile_id: str,
    term: str,
    request: BenchmarkValueRequest,
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.set_benchmark_value(profile_id, term, request.value)


@router.delete("/settings/profiles/{profile_id}/benchmarks/{term:path}", response_model=AppSettings)
async def remove_benchmark_value(
    profile_id: str,
    term: str,
    settings_service: SettingsService = Depends(get_settings_service),
) -> AppSettings:
    return await settings_service.remove_benchmark_value(profile_id, term)


# ---------- Config ----------
@router.get("/config")
async def get_config():
    return {
        "allowed_extensions": settings.DOCUMENT_EXTENSIONS,
        "max_file_size_mb": settings.MAX_FILE_SIZE // (1024 * 1024),
        "sync_channel": settings.SYNC_CHANNEL,
        "llm_model": settings.LLM_MODEL_NAME,
    }


# ---------- Health Check ----------
@router.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
