# core/interfaces.py
"""Core interfaces for the credit analysis service"""
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Tuple, Union

from core.domain import (
    AppSettings, BenchmarkResult, ChatMessage, DealSession, ExtractionResult,
    StandardTerm, UploadedFile, WebFinancials
)

ChangeListener = Callable[[], None]

# ============= Local Store Interfaces =============
class ISessionStore(ABC):
    """
    Keyed store of deal sessions (the local, authoritative copy).

    Every read passes records through the schema migrator. Implementations
    call registered change listeners after each local write unless the
    write is flagged ``notify=False``.
    """

    @abstractmethod
    def add_listener(self, listener: ChangeListener) -> None:
        """Register a callback fired after local writes."""
        pass

    @abstractmethod
    async def get_all(self) -> List[DealSession]:
        """Every readable session, newest ``last_modified`` first."""
        pass

    @abstractmethod
    async def get(self, session_id: str) -> Optional[DealSession]:
        """Single session, or None when missing or unreadable."""
        pass

    @abstractmethod
    async def put(self, session: DealSession) -> DealSession:
        """Upsert by id (full overwrite). Returns the stored session."""
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        """Remove by id. Missing ids are a no-op."""
        pass

    @abstractmethod
    async def export_all(self) -> str:
        """JSON array of every session in the current record shape."""
        pass

    @abstractmethod
    async def import_all(
        self,
        blob: Union[str, bytes, List[Any]],
        merge: bool = True,
        notify: bool = True,
    ) -> int:
        """
        Union-by-id import. Imported records overwrite same-id local ones.
        With merge=False, local records missing from the blob are removed.

        Raises:
            FormatError: blob is not a JSON list of session records
        """
        pass


class ISettingsStore(ABC):
    """Singleton store for terms, benchmark profiles and the active profile."""

    @abstractmethod
    def add_listener(self, listener: ChangeListener) -> None:
        pass

    @abstractmethod
    async def load(self) -> AppSettings:
        """Persisted settings, or system defaults. Never fails for missing data."""
        pass

    @abstractmethod
    async def save(self, settings: AppSettings, notify: bool = True) -> AppSettings:
        """Validate invariants, repair the active pointer, persist, return canonical settings."""
        pass

    @abstractmethod
    async def import_raw(self, payload: Any, notify: bool = True) -> AppSettings:
        """Replace settings from a raw (possibly legacy) document."""
        pass


# ============= File Channel Interface =============
class IFileChannel(ABC):
    """
    Key-value access to one companion file (sessions or settings).

    Raises SyncUnavailable when the channel cannot be reached and
    FormatError when it answers with something that is not JSON.
    """

    @abstractmethod
    async def read(self) -> Any:
        """Parsed file content, or the channel's empty sentinel when no file exists."""
        pass

    @abstractmethod
    async def write(self, payload: Any) -> None:
        """Replace the file content."""
        pass


# ============= Extraction Collaborator =============
class IExtractionService(ABC):
    """LLM-backed analysis. The core only depends on these contracts."""

    @abstractmethod
    async def extract_and_benchmark(
        self,
        file: UploadedFile,
        terms: List[StandardTerm],
        benchmark_data: dict,
    ) -> Tuple[List[ExtractionResult], List[BenchmarkResult]]:
        """
        Extract terms and compare them against one profile's data.

        Raises:
            ExtractionFailure: call failed or output was unusable
        """
        pass

    @abstractmethod
    async def rebenchmark_terms(
        self,
        extraction: List[ExtractionResult],
        benchmark_data: dict,
    ) -> List[BenchmarkResult]:
        """Re-derive variance only, from stored extraction results."""
        pass

    @abstractmethod
    async def chat(self, file: UploadedFile, history: List[ChatMessage], message: str) -> str:
        pass

    @abstractmethod
    async def fetch_financials(self, borrower_name: str) -> WebFinancials:
        pass


class IDocumentTextExtractor(ABC):
    """Turn an uploaded document into plain text for text-only LLMs."""

    @abstractmethod
    def extract_text(self, file: UploadedFile) -> str:
        pass
