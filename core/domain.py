# core/domain.py
"""Domain models for deal sessions and application settings.

Field names serialize in camelCase (``by_alias=True``) so that exports and
the companion files keep the established on-disk format.
"""
from datetime import datetime, timezone
from typing import List, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from core.enums import (
    AnalysisState, BenchmarkState, ChatRole, Confidence, TermCategory, Variance
)

SESSION_SCHEMA_VERSION = 2
SETTINGS_SCHEMA_VERSION = 2
DEFAULT_BORROWER_NAME = "New Borrower"
NOT_FOUND_VALUE = "Not Found"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def dedupe_by_term(results: List['BenchmarkResult']) -> List['BenchmarkResult']:
    """Keep the first result per term."""
    seen = set()
    unique = []
    for result in results:
        if result.term in seen:
            continue
        seen.add(result.term)
        unique.append(result)
    return unique


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ============= Deal Sessions =============

class UploadedFile(CamelModel):
    """The uploaded document. Immutable after session creation."""
    model_config = ConfigDict(frozen=True)

    name: str
    mime_type: str = Field(alias="type")
    data: str  # Base64
    size: int


class ExtractionResult(CamelModel):
    term: str
    value: str
    source_section: str = ""
    evidence: str = ""
    confidence: Confidence = Confidence.LOW

    @property
    def is_found(self) -> bool:
        return bool(self.value) and self.value != NOT_FOUND_VALUE


class BenchmarkResult(CamelModel):
    term: str
    extracted_value: str
    benchmark_value: str
    variance: Variance
    commentary: str = ""


class WebFinancialMetric(CamelModel):
    metric: str
    value: str
    period: str = ""
    source: str = ""


class WebFinancials(CamelModel):
    data: List[WebFinancialMetric] = Field(default_factory=list)
    source_urls: List[str] = Field(default_factory=list)
    last_updated: datetime


class ChatMessage(CamelModel):
    id: str
    role: ChatRole
    text: str
    timestamp: datetime
    is_error: bool = False


class DealSession(CamelModel):
    """One document under analysis plus everything derived from it."""
    id: str
    borrower_name: str = DEFAULT_BORROWER_NAME
    file: UploadedFile
    extraction_results: List[ExtractionResult] = Field(default_factory=list)
    benchmark_results: Dict[str, List[BenchmarkResult]] = Field(default_factory=dict)
    web_financials: Optional[WebFinancials] = None
    chat_history: List[ChatMessage] = Field(default_factory=list)
    last_modified: datetime
    schema_version: int = SESSION_SCHEMA_VERSION

    @field_validator("benchmark_results")
    @classmethod
    def _one_result_per_term(cls, value: Dict[str, List[BenchmarkResult]]):
        return {profile_id: dedupe_by_term(results) for profile_id, results in value.items()}

    @property
    def analysis_state(self) -> AnalysisState:
        return AnalysisState.ANALYZED if self.extraction_results else AnalysisState.FRESH

    def benchmark_state(self, profile_id: str) -> BenchmarkState:
        if profile_id in self.benchmark_results:
            return BenchmarkState.BENCHMARKED
        return BenchmarkState.NOT_BENCHMARKED

    def to_record(self) -> dict:
        """Serialize to the portable (export) record shape."""
        return self.model_dump(mode="json", by_alias=True)


# ============= Settings =============

class StandardTerm(CamelModel):
    """What to extract. ``name`` is the cross-reference key, not ``id``."""
    id: str
    name: str
    description: str = ""
    category: TermCategory = TermCategory.GENERAL


class BenchmarkProfile(CamelModel):
    id: str
    name: str
    data: Dict[str, str] = Field(default_factory=dict)


class AppSettings(CamelModel):
    terms: List[StandardTerm]
    benchmark_profiles: List[BenchmarkProfile]
    active_profile_id: str
    schema_version: int = SETTINGS_SCHEMA_VERSION

    @property
    def active_profile(self) -> BenchmarkProfile:
        return next(
            (p for p in self.benchmark_profiles if p.id == self.active_profile_id),
            self.benchmark_profiles[0],
        )

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
