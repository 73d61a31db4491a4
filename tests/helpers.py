"""Fakes and record builders shared by the test suite."""
import asyncio
import base64
import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from core.benchmark import build_rebenchmark_results, build_term_results
from core.domain import DealSession, UploadedFile, WebFinancialMetric, WebFinancials
from core.exceptions import ExtractionFailure, SyncUnavailable
from core.interfaces import IExtractionService, IFileChannel


def make_file(name: str = "Acme Credit Agreement.pdf", text: str = "%PDF-1.4 fake") -> UploadedFile:
    content = text.encode("utf-8")
    return UploadedFile(
        name=name,
        type="application/pdf",
        data=base64.b64encode(content).decode("ascii"),
        size=len(content),
    )


def make_session(session_id: str, minute: int = 0, **overrides: Any) -> DealSession:
    fields = {
        "id": session_id,
        "borrower_name": f"Borrower {session_id}",
        "file": make_file(),
        "last_modified": datetime(2024, 1, 1, 12, minute, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return DealSession(**fields)


def legacy_session_record(session_id: str = "legacy-1") -> Dict[str, Any]:
    """A pre-profile record as the browser store used to write it."""
    return {
        "id": session_id,
        "borrowerName": "Legacy Corp",
        "file": {"name": "legacy.pdf", "type": "application/pdf", "data": "JVBERg==", "size": 4},
        "extractionResults": [
            {"term": "A", "value": "4.00x", "sourceSection": "7.1", "evidence": "...", "confidence": "High"},
        ],
        "benchmarkResults": [
            {"term": "A", "extractedValue": "4.00x", "benchmarkValue": "4.50x",
             "variance": "Green", "commentary": "Tighter than market"},
        ],
        "chatHistory": [
            {"id": "1", "role": "model", "text": "Hello", "timestamp": "2024-01-01T10:00:00.000Z"},
        ],
        "lastModified": "2024-01-01T10:00:00.000Z",
    }


def term_item(term: str, value: str = "4.00x", variance: Optional[str] = "Green", **extra: Any) -> Dict[str, Any]:
    item = {
        "term": term,
        "value": value,
        "sourceSection": "Section 7.1",
        "evidence": f"quote for {term}",
        "confidence": "High",
        "benchmarkValue": "4.50x",
        "variance": variance,
        "commentary": f"{term} commentary",
    }
    item.update(extra)
    return item


class FakeFileChannel(IFileChannel):
    """In-memory companion file with switchable failure and latency."""

    def __init__(self, payload: Any = None):
        self.payload = copy.deepcopy(payload)
        self.reads = 0
        self.writes: List[Any] = []
        self.unavailable = False
        self.delay = 0.0

    async def read(self) -> Any:
        self.reads += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.unavailable:
            raise SyncUnavailable("channel down")
        return copy.deepcopy(self.payload)

    async def write(self, payload: Any) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.unavailable:
            raise SyncUnavailable("channel down")
        self.payload = copy.deepcopy(payload)
        self.writes.append(copy.deepcopy(payload))


class FakeExtractionService(IExtractionService):
    """Deterministic collaborator built on the same result-building rules as LLMService."""

    def __init__(self, items: Optional[List[Dict[str, Any]]] = None):
        self.items = items if items is not None else [
            term_item("Borrower Name", value="Acme Holdings LLC", variance="N/A"),
            term_item("Max Total Net Leverage", value="5.00x", variance="Red"),
            term_item("Governing Law", value="New York", variance="Green", benchmarkValue="New York"),
        ]
        self.rebenchmark_variance = "Yellow"
        self.failing_terms: Set[str] = set()
        self.fail = False
        self.calls = 0

    async def extract_and_benchmark(self, file, terms, benchmark_data):
        self.calls += 1
        if self.fail:
            raise ExtractionFailure("model unavailable")
        return build_term_results(self.items, benchmark_data)

    async def rebenchmark_terms(self, extraction, benchmark_data):
        if any(r.term in self.failing_terms for r in extraction):
            raise ExtractionFailure("rebenchmark failed")
        items = [
            {"term": r.term, "benchmarkValue": benchmark_data.get(r.term, "N/A"),
             "variance": self.rebenchmark_variance, "commentary": "re-evaluated"}
            for r in extraction
        ]
        return build_rebenchmark_results(items, extraction, benchmark_data)

    async def chat(self, file, history, message):
        if self.fail:
            raise ExtractionFailure("model unavailable")
        return f"Answer to: {message}"

    async def fetch_financials(self, borrower_name):
        if self.fail:
            raise ExtractionFailure("model unavailable")
        return WebFinancials(
            data=[WebFinancialMetric(metric="LTM Revenue", value="$1.2B", period="FY2023", source="10-K")],
            source_urls=[],
            last_updated=datetime(2024, 2, 1, tzinfo=timezone.utc),
        )
