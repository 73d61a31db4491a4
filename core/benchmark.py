# core/benchmark.py
"""
Benchmark profile rules.

Pure functions over domain models. Nothing here mutates its inputs:
every operation returns a new session or settings object for the caller
to persist.
"""
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from core.domain import (
    AppSettings, BenchmarkProfile, BenchmarkResult, DealSession,
    ExtractionResult, NOT_FOUND_VALUE, dedupe_by_term, utc_now
)
from core.enums import Confidence, Variance
from core.exceptions import InvariantViolation, NotFoundError


_NO_BENCHMARK = {"", "N/A", "NA", "NONE"}


# ============= Profile lookup =============

def profile_for(profiles: List[BenchmarkProfile], profile_id: Optional[str]) -> BenchmarkProfile:
    """Resolve a profile, falling back to the first one for stale ids."""
    if not profiles:
        raise InvariantViolation("At least one benchmark profile must exist")
    for profile in profiles:
        if profile.id == profile_id:
            return profile
    return profiles[0]


def require_profile(profiles: List[BenchmarkProfile], profile_id: str) -> BenchmarkProfile:
    """Strict lookup for operations that need the exact profile."""
    for profile in profiles:
        if profile.id == profile_id:
            return profile
    raise NotFoundError(f"Benchmark profile '{profile_id}' not found")


def ensure_active_profile(settings: AppSettings) -> AppSettings:
    """Point ``active_profile_id`` at an existing profile."""
    if not settings.benchmark_profiles:
        raise InvariantViolation("At least one benchmark profile must exist")
    if any(p.id == settings.active_profile_id for p in settings.benchmark_profiles):
        return settings
    return settings.model_copy(
        update={"active_profile_id": settings.benchmark_profiles[0].id}, deep=True
    )


# ============= Profile editing =============

def clone_profile(profile: BenchmarkProfile, new_id: str, name: str) -> BenchmarkProfile:
    return BenchmarkProfile(id=new_id, name=name, data=dict(profile.data))


def replace_profile(settings: AppSettings, profile: BenchmarkProfile) -> AppSettings:
    require_profile(settings.benchmark_profiles, profile.id)
    profiles = [profile if p.id == profile.id else p for p in settings.benchmark_profiles]
    return settings.model_copy(update={"benchmark_profiles": profiles}, deep=True)


def remove_profile(settings: AppSettings, profile_id: str) -> AppSettings:
    """Delete a profile. The last remaining profile cannot be deleted."""
    require_profile(settings.benchmark_profiles, profile_id)
    if len(settings.benchmark_profiles) == 1:
        raise InvariantViolation("Cannot delete the last benchmark profile")

    remaining = [p for p in settings.benchmark_profiles if p.id != profile_id]
    updated = settings.model_copy(update={"benchmark_profiles": remaining}, deep=True)
    return ensure_active_profile(updated)


# ============= Variance =============

def record_variance(
    session: DealSession,
    profile_id: str,
    results: Iterable[BenchmarkResult],
) -> DealSession:
    """
    Store ``results`` as the variance for one profile.

    Results held for every other profile are left exactly as they were.
    """
    benchmark_results = {
        existing_id: list(existing)
        for existing_id, existing in session.benchmark_results.items()
    }
    benchmark_results[profile_id] = dedupe_by_term(list(results))
    return session.model_copy(
        update={"benchmark_results": benchmark_results, "last_modified": utc_now()},
        deep=True,
    )


def _benchmark_value(item: Mapping[str, Any], benchmark_data: Mapping[str, str]) -> Optional[str]:
    value = item.get("benchmarkValue") or benchmark_data.get(item.get("term", ""))
    if not isinstance(value, str) or value.strip().upper() in _NO_BENCHMARK:
        return None
    return value


def _comparable(
    item: Mapping[str, Any],
    extracted_value: str,
    benchmark_data: Mapping[str, str],
) -> Optional[BenchmarkResult]:
    variance = Variance.parse(item.get("variance"))
    benchmark_value = _benchmark_value(item, benchmark_data)
    if variance is None or benchmark_value is None:
        return None
    return BenchmarkResult(
        term=item["term"],
        extracted_value=extracted_value,
        benchmark_value=benchmark_value,
        variance=variance,
        commentary=str(item.get("commentary") or ""),
    )


def build_term_results(
    items: Iterable[Mapping[str, Any]],
    benchmark_data: Mapping[str, str],
) -> Tuple[List[ExtractionResult], List[BenchmarkResult]]:
    """
    Split raw per-term collaborator output into extraction and benchmark records.

    Terms whose variance is missing, "N/A" or unparseable, or that have no
    benchmark value, are left out of the benchmark list.
    """
    extraction: List[ExtractionResult] = []
    benchmarking: List[BenchmarkResult] = []
    for item in items:
        term = item.get("term")
        if not term:
            continue
        value = str(item.get("value") or NOT_FOUND_VALUE)
        extraction.append(ExtractionResult(
            term=term,
            value=value,
            source_section=str(item.get("sourceSection") or ""),
            evidence=str(item.get("evidence") or ""),
            confidence=Confidence.from_string(item.get("confidence")),
        ))
        result = _comparable(item, value, benchmark_data)
        if result is not None:
            benchmarking.append(result)
    return extraction, dedupe_by_term(benchmarking)


def build_rebenchmark_results(
    items: Iterable[Mapping[str, Any]],
    extraction: List[ExtractionResult],
    benchmark_data: Mapping[str, str],
) -> List[BenchmarkResult]:
    """Benchmark records for terms that were actually extracted earlier."""
    extracted: Dict[str, ExtractionResult] = {r.term: r for r in extraction}
    results = []
    for item in items:
        original = extracted.get(item.get("term", ""))
        if original is None:
            continue
        result = _comparable(item, original.value, benchmark_data)
        if result is not None:
            results.append(result)
    return dedupe_by_term(results)


def variance_counts(session: DealSession, profile_id: str) -> Dict[str, int]:
    counts = Counter(r.variance.value for r in session.benchmark_results.get(profile_id, []))
    return {variance.value: counts.get(variance.value, 0) for variance in Variance}
