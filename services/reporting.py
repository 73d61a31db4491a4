# services/reporting.py
"""CSV export of a session's extraction and benchmark results."""
import csv
import io
import re
from typing import List, Optional

from core.domain import DealSession, StandardTerm
from core.enums import TermCategory

CSV_HEADERS = [
    "Category", "Term", "Value", "Source Section", "Confidence",
    "Evidence", "Benchmark Variance", "Commentary",
]


def csv_filename(session: DealSession) -> str:
    return f"{re.sub(r'[^a-z0-9]', '_', session.borrower_name, flags=re.IGNORECASE)}_Analysis.csv"


def session_to_csv(
    session: DealSession,
    profile_id: str,
    terms: Optional[List[StandardTerm]] = None,
) -> str:
    """One row per extraction result, joined with the profile's benchmark commentary."""
    categories = {t.name: t.category for t in terms or []}
    benchmarks = {r.term: r for r in session.benchmark_results.get(profile_id, [])}

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for result in session.extraction_results:
        benchmark = benchmarks.get(result.term)
        writer.writerow([
            categories.get(result.term, TermCategory.GENERAL).value,
            result.term,
            result.value,
            result.source_section,
            result.confidence.value,
            result.evidence,
            benchmark.variance.value if benchmark else "",
            benchmark.commentary if benchmark else "",
        ])
    return buffer.getvalue()
