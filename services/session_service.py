# services/session_service.py
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union
from uuid import uuid4

from config import settings
from core.benchmark import record_variance
from core.defaults import BORROWER_NAME_TERM
from core.domain import (
    BenchmarkProfile, BenchmarkResult, ChatMessage, DealSession, ExtractionResult,
    StandardTerm, UploadedFile, WebFinancials, DEFAULT_BORROWER_NAME, utc_now
)
from core.enums import AnalysisState, BenchmarkState, ChatRole, ErrorCode, ProcessingStatus
from core.exceptions import (
    CreditInsightError, ExtractionFailure, InvariantViolation, NotFoundError
)
from core.interfaces import IExtractionService, ISessionStore
from infrastructure.progress_store import ProgressStore
from services.sync_bridge import FileSyncBridge
from utils.common import get_file_stem

logger = logging.getLogger(settings.LOGGER_NAME)

ExtractorFn = Callable[
    [UploadedFile, List[StandardTerm], Dict[str, str]],
    Awaitable[Tuple[List[ExtractionResult], List[BenchmarkResult]]],
]
RebenchmarkFn = Callable[[List[ExtractionResult], Dict[str, str]], Awaitable[List[BenchmarkResult]]]
ChatFn = Callable[[UploadedFile, List[ChatMessage], str], Awaitable[str]]
FetchFinancialsFn = Callable[[str], Awaitable[WebFinancials]]

CHAT_ERROR_TEXT = "I encountered an issue analyzing the document. Please check the model service and try again."


@dataclass
class RebenchmarkReport:
    """Outcome of a batch rebenchmark. Failures are reported per session, never rolled back."""
    profile_id: str
    updated: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


@dataclass
class AnalysisStatus:
    session_id: str
    profile_id: str
    analysis: AnalysisState
    benchmark: BenchmarkState
    progress: Optional[Dict] = None


class SessionOrchestrator:
    """
    Aggregate root for deal sessions.

    Every mutation reads the current session from the store, derives a new
    one, and persists it; the stored session is returned to the caller.
    Calls to the extraction collaborator happen outside any store access so
    a failed call never leaves a partially updated session behind.
    """

    def __init__(
        self,
        store: ISessionStore,
        extraction_service: IExtractionService,
        progress_store: ProgressStore,
        sync_bridge: Optional[FileSyncBridge] = None,
    ):
        self.store = store
        self.extraction_service = extraction_service
        self.progress_store = progress_store
        self.sync_bridge = sync_bridge

    # ============= Reads =============

    async def list_sessions(self) -> List[DealSession]:
        if self.sync_bridge is not None:
            await self.sync_bridge.pull_sessions()
        return await self.store.get_all()

    async def get_session(self, session_id: str) -> DealSession:
        session = await self.store.get(session_id)
        if session is None:
            raise NotFoundError(f"Session '{session_id}' not found")
        return session

    def analysis_status(self, session: DealSession, profile_id: str) -> AnalysisStatus:
        return AnalysisStatus(
            session_id=session.id,
            profile_id=profile_id,
            analysis=session.analysis_state,
            benchmark=session.benchmark_state(profile_id),
            progress=self.progress_store.get(session.id),
        )

    # ============= Lifecycle =============

    async def create_session(self, file: UploadedFile) -> DealSession:
        session = DealSession(
            id=str(uuid4()),
            borrower_name=DEFAULT_BORROWER_NAME,
            file=file,
            last_modified=utc_now(),
        )
        stored = await self.store.put(session)
        logger.info(f"Created session {stored.id} for '{file.name}'")
        return stored

    async def delete_session(self, session_id: str) -> None:
        await self.store.delete(session_id)
        self.progress_store.remove(session_id)

    async def rename_borrower(self, session_id: str, borrower_name: str) -> DealSession:
        name = borrower_name.strip()
        if not name:
            raise InvariantViolation("Borrower name cannot be empty")
        session = await self.get_session(session_id)
        updated = session.model_copy(
            update={"borrower_name": name, "last_modified": utc_now()}, deep=True
        )
        return await self.store.put(updated)

    # ============= Analysis =============

    @staticmethod
    def _borrower_label(session: DealSession, extraction: List[ExtractionResult]) -> str:
        extracted = next((r for r in extraction if r.term == BORROWER_NAME_TERM), None)
        if extracted is not None and extracted.is_found and extracted.value.strip():
            return extracted.value.strip()
        if session.borrower_name == DEFAULT_BORROWER_NAME:
            return get_file_stem(session.file.name) or DEFAULT_BORROWER_NAME
        return session.borrower_name

    async def run_analysis(
        self,
        session_id: str,
        terms: List[StandardTerm],
        profile: BenchmarkProfile,
        extractor: Optional[ExtractorFn] = None,
    ) -> DealSession:
        """
        Extract all terms and benchmark them against ``profile``.

        Extraction results are replaced wholesale; variance is recorded for
        ``profile`` only and every other profile's results are preserved.

        Raises:
            NotFoundError: unknown session
            AnalysisInProgress: an analysis for this session is still running
            ExtractionFailure: the collaborator failed; the session is unchanged
        """
        extractor = extractor or self.extraction_service.extract_and_benchmark
        session = await self.get_session(session_id)
        self.progress_store.start(session_id)

        try:
            self.progress_store.update(
                session_id, ProcessingStatus.EXTRACTING, f"Analyzing '{session.file.name}'..."
            )
            extraction, benchmarking = await extractor(session.file, terms, dict(profile.data))
        except CreditInsightError as e:
            self.progress_store.fail(session_id, e.message, e.error_code)
            raise
        except Exception as e:
            logger.error(f"Analysis failed for session {session_id}: {e}", exc_info=True)
            self.progress_store.fail(session_id, str(e), ErrorCode.EXTRACTION_FAILED)
            raise ExtractionFailure(f"Analysis failed: {e}") from e

        try:
            stored = await self._persist_analysis(session_id, profile.id, extraction, benchmarking)
        except CreditInsightError as e:
            self.progress_store.fail(session_id, e.message, e.error_code)
            raise
        except Exception as e:
            logger.error(f"Saving analysis failed for session {session_id}: {e}", exc_info=True)
            self.progress_store.fail(session_id, f"Saving analysis failed: {e}", ErrorCode.STORAGE_FAILED)
            raise

        self.progress_store.complete(session_id)
        logger.info(
            f"Analyzed session {session_id}: {len(extraction)} terms, "
            f"{len(stored.benchmark_results.get(profile.id, []))} benchmarked against '{profile.id}'"
        )
        return stored

    async def _persist_analysis(
        self,
        session_id: str,
        profile_id: str,
        extraction: List[ExtractionResult],
        benchmarking: List[BenchmarkResult],
    ) -> DealSession:
        # Chat or renames may have landed while the collaborator was running
        current = await self.store.get(session_id)
        if current is None:
            raise NotFoundError(f"Session '{session_id}' was deleted during analysis")

        updated = current.model_copy(
            update={
                "extraction_results": list(extraction),
                "borrower_name": self._borrower_label(current, extraction),
            },
            deep=True,
        )
        updated = record_variance(updated, profile_id, benchmarking)
        return await self.store.put(updated)

    async def rebenchmark(
        self,
        session_ids: List[str],
        profile: BenchmarkProfile,
        rebenchmark_fn: Optional[RebenchmarkFn] = None,
    ) -> RebenchmarkReport:
        """
        Re-derive variance against ``profile`` from stored extraction results.

        Sessions are evaluated concurrently and persisted one by one. A
        failing session is reported in ``failed`` and does not stop the rest.
        """
        rebenchmark_fn = rebenchmark_fn or self.extraction_service.rebenchmark_terms
        benchmark_data = dict(profile.data)

        async def evaluate(session_id: str) -> List[BenchmarkResult]:
            session = await self.get_session(session_id)
            if not session.extraction_results:
                raise InvariantViolation(f"Session '{session_id}' has not been analyzed yet")
            return await rebenchmark_fn(session.extraction_results, benchmark_data)

        outcomes = await asyncio.gather(
            *(evaluate(session_id) for session_id in session_ids), return_exceptions=True
        )

        report = RebenchmarkReport(profile_id=profile.id)
        for session_id, outcome in zip(session_ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Rebenchmark failed for session {session_id}: {outcome}")
                report.failed[session_id] = str(outcome)
                continue

            current = await self.store.get(session_id)
            if current is None:
                report.failed[session_id] = f"Session '{session_id}' was deleted"
                continue
            await self.store.put(record_variance(current, profile.id, outcome))
            report.updated.append(session_id)

        logger.info(
            f"Rebenchmarked {len(report.updated)} sessions against '{profile.id}', "
            f"{len(report.failed)} failed"
        )
        return report

    # ============= Chat & financials =============

    async def send_chat_message(
        self,
        session_id: str,
        text: str,
        chat_fn: Optional[ChatFn] = None,
    ) -> DealSession:
        """Append the user message and then the assistant reply (or an error reply)."""
        chat_fn = chat_fn or self.extraction_service.chat
        session = await self.get_session(session_id)
        user_message = ChatMessage(
            id=str(uuid4()), role=ChatRole.USER, text=text, timestamp=utc_now()
        )

        try:
            reply = await chat_fn(session.file, list(session.chat_history), text)
            answer = ChatMessage(
                id=str(uuid4()), role=ChatRole.ASSISTANT, text=reply, timestamp=utc_now()
            )
        except CreditInsightError as e:
            logger.warning(f"Chat failed for session {session_id}: {e}")
            answer = ChatMessage(
                id=str(uuid4()), role=ChatRole.ASSISTANT, text=f"Error: {CHAT_ERROR_TEXT}",
                timestamp=utc_now(), is_error=True,
            )

        current = await self.get_session(session_id)
        updated = current.model_copy(
            update={
                "chat_history": [*current.chat_history, user_message, answer],
                "last_modified": utc_now(),
            },
            deep=True,
        )
        return await self.store.put(updated)

    async def refresh_financials(
        self,
        session_id: str,
        fetch_fn: Optional[FetchFinancialsFn] = None,
    ) -> DealSession:
        """Replace the web financials snapshot. Extraction results are not touched."""
        fetch_fn = fetch_fn or self.extraction_service.fetch_financials
        session = await self.get_session(session_id)
        if session.borrower_name == DEFAULT_BORROWER_NAME:
            raise InvariantViolation("Analyze the document or set a borrower name first")

        try:
            financials = await fetch_fn(session.borrower_name)
        except CreditInsightError:
            raise
        except Exception as e:
            logger.error(f"Financials lookup failed for '{session.borrower_name}': {e}", exc_info=True)
            raise ExtractionFailure(f"Financials lookup failed: {e}") from e

        current = await self.get_session(session_id)
        updated = current.model_copy(
            update={"web_financials": financials, "last_modified": utc_now()}, deep=True
        )
        return await self.store.put(updated)

    # ============= Backup =============

    async def export_backup(self) -> str:
        if self.sync_bridge is not None:
            await self.sync_bridge.pull_sessions()
        return await self.store.export_all()

    async def import_backup(self, blob: Union[str, bytes, list]) -> int:
        """Merge a backup into the store. FormatError reaches the caller."""
        return await self.store.import_all(blob, merge=True)
