# core/migration.py
"""
Schema migration for persisted session and settings records.

Every read path (store listing, imports, sync pulls, settings load) runs
raw records through these functions, so business code only ever sees the
current shape. Both migrations are pure and idempotent: running them on an
already-current record returns an equal record.

Version history (``schemaVersion``):
  1  benchmarkResults was a flat list compared against a single global
     benchmark; settings held a flat ``benchmarks`` map. Records written
     before versioning carry no ``schemaVersion`` key and count as v1.
  2  benchmarkResults is keyed by profile id; settings hold
     ``benchmarkProfiles`` and ``activeProfileId``.
"""
import copy
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from pydantic import TypeAdapter, ValidationError

from core.defaults import (
    DEFAULT_PROFILE_ID, LEGACY_PROFILE_NAME, default_profiles, default_terms
)
from core.domain import SESSION_SCHEMA_VERSION, SETTINGS_SCHEMA_VERSION
from core.enums import ChatRole, Variance
from core.exceptions import FormatError

_datetime_adapter = TypeAdapter(datetime)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_datetime(value: Any) -> datetime:
    """
    Normalize a stored timestamp (datetime, ISO string, epoch s/ms) to an aware datetime.
    Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = _datetime_adapter.validate_python(value)
        except ValidationError:
            raise FormatError(f"Unreadable timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _timestamp_or_epoch(value: Any) -> datetime:
    # Records written before a timestamp field existed
    return _EPOCH if value is None else to_datetime(value)


# ============= Sessions =============

def _upgrade_session_v1(record: Dict[str, Any]) -> Dict[str, Any]:
    results = record.get("benchmarkResults")
    if isinstance(results, list):
        # Pre-profile results were computed against the default market benchmark
        record["benchmarkResults"] = {DEFAULT_PROFILE_ID: results}
    return record


_SESSION_UPGRADES: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    1: _upgrade_session_v1,
}


def _normalize_benchmark_list(results: Any) -> List[Dict[str, Any]]:
    if not isinstance(results, list):
        raise FormatError("benchmark results must be a list")
    kept = []
    seen_terms = set()
    for entry in results:
        if not isinstance(entry, dict):
            raise FormatError("benchmark result must be an object")
        term = entry.get("term")
        if not isinstance(term, str):
            raise FormatError(f"benchmark result term must be a string, got {term!r}")
        variance = Variance.parse(entry.get("variance"))
        if variance is None or term in seen_terms:
            continue
        seen_terms.add(term)
        kept.append({**entry, "variance": variance.value})
    return kept


def _normalize_chat_message(message: Any) -> Dict[str, Any]:
    if not isinstance(message, dict):
        raise FormatError("chat message must be an object")
    normalized = dict(message)
    if normalized.get("role") == "model":
        normalized["role"] = ChatRole.ASSISTANT.value
    normalized["timestamp"] = _timestamp_or_epoch(normalized.get("timestamp"))
    return normalized


def migrate_session(raw: Any) -> Dict[str, Any]:
    """Upgrade a persisted session record of any historical shape to the current one."""
    if not isinstance(raw, dict):
        raise FormatError("session record must be an object")
    if not raw.get("id"):
        raise FormatError("session record has no id")

    record = copy.deepcopy(raw)
    version = record.get("schemaVersion", 1)
    if (
        not isinstance(version, int)
        or isinstance(version, bool)
        or not 1 <= version <= SESSION_SCHEMA_VERSION
    ):
        raise FormatError(f"Unsupported session schema version: {version!r}")
    for from_version in range(version, SESSION_SCHEMA_VERSION):
        record = _SESSION_UPGRADES[from_version](record)
    record["schemaVersion"] = SESSION_SCHEMA_VERSION

    # 1. timestamps
    record["lastModified"] = _timestamp_or_epoch(record.get("lastModified"))

    web_financials = record.get("webFinancials")
    if web_financials is not None:
        if not isinstance(web_financials, dict):
            raise FormatError("webFinancials must be an object")
        record["webFinancials"] = {
            **web_financials,
            "lastUpdated": _timestamp_or_epoch(web_financials.get("lastUpdated")),
        }

    # 2. profile-keyed benchmark results
    results = record.get("benchmarkResults") or {}
    if not isinstance(results, dict):
        raise FormatError("benchmarkResults must map profile ids to lists")
    record["benchmarkResults"] = {
        str(profile_id): _normalize_benchmark_list(entries or [])
        for profile_id, entries in results.items()
    }

    # 3. collections default to empty
    chat_history = record.get("chatHistory") or []
    if not isinstance(chat_history, list):
        raise FormatError("chatHistory must be a list")
    record["chatHistory"] = [_normalize_chat_message(m) for m in chat_history]
    if record.get("extractionResults") is None:
        record["extractionResults"] = []

    return record


# ============= Settings =============

def migrate_settings(raw: Any) -> Dict[str, Any]:
    """Upgrade a persisted settings document and repair its active-profile pointer."""
    if not isinstance(raw, dict):
        raise FormatError("settings must be an object")

    record = copy.deepcopy(raw)
    legacy_benchmarks = record.pop("benchmarks", None)

    if record.get("terms") is None:
        record["terms"] = [t.model_dump(mode="json", by_alias=True) for t in default_terms()]

    profiles = record.get("benchmarkProfiles")
    if profiles is None and isinstance(legacy_benchmarks, dict):
        record["benchmarkProfiles"] = [{
            "id": DEFAULT_PROFILE_ID,
            "name": LEGACY_PROFILE_NAME,
            "data": legacy_benchmarks,
        }]
        record["activeProfileId"] = DEFAULT_PROFILE_ID
    elif not profiles:
        record["benchmarkProfiles"] = [
            p.model_dump(mode="json", by_alias=True) for p in default_profiles()
        ]
    elif not isinstance(profiles, list) or not all(isinstance(p, dict) for p in profiles):
        raise FormatError("benchmarkProfiles must be a list of objects")

    profile_ids = [p.get("id") for p in record["benchmarkProfiles"]]
    if record.get("activeProfileId") not in profile_ids:
        record["activeProfileId"] = profile_ids[0]

    record["schemaVersion"] = SETTINGS_SCHEMA_VERSION
    return record
