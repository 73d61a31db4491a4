# core/enums.py
"""Shared enumerations used across the application."""
from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Error codes for user-facing error messages."""
    INVALID_FORMAT = "INVALID_FORMAT"
    NOT_FOUND = "NOT_FOUND"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    SYNC_UNAVAILABLE = "SYNC_UNAVAILABLE"
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"
    ANALYSIS_IN_PROGRESS = "ANALYSIS_IN_PROGRESS"
    STORAGE_FAILED = "STORAGE_FAILED"


class Variance(str, Enum):
    """
    Risk variance of an extracted value against a benchmark.

    Green = in line or better, Yellow = minor deviation, Red = aggressive.
    "Not applicable" has no member: such terms are left out of results.
    """
    GREEN = "Green"
    YELLOW = "Yellow"
    RED = "Red"

    @staticmethod
    def parse(value: Any) -> Optional['Variance']:
        """Lenient parse of LLM output. Returns None for N/A or garbage."""
        if isinstance(value, Variance):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().capitalize()
        try:
            return Variance(normalized)
        except ValueError:
            return None


class Confidence(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @staticmethod
    def from_string(value: Any) -> 'Confidence':
        """Convert string to Confidence, defaulting to LOW."""
        if isinstance(value, str):
            try:
                return Confidence(value.strip().capitalize())
            except ValueError:
                pass
        return Confidence.LOW


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class TermCategory(str, Enum):
    GENERAL = "General"
    FINANCIAL = "Financial"
    COVENANTS = "Covenants"
    BASKETS = "Baskets"
    DEFINITIONS = "Definitions"
    RISK = "Risk"


class AnalysisState(str, Enum):
    """Derived extraction state of a session (never stored)."""
    FRESH = "fresh"
    ANALYZED = "analyzed"


class BenchmarkState(str, Enum):
    """Derived per-profile benchmark state of a session (never stored)."""
    NOT_BENCHMARKED = "not_benchmarked"
    BENCHMARKED = "benchmarked"


class ProcessingStatus(str, Enum):
    """Analysis run stages tracked per session."""
    PENDING = "pending"
    EXTRACTING = "extracting"
    COMPLETED = "completed"
    FAILED = "failed"
