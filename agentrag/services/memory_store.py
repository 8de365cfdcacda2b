"""
Shared memory store: key/value entries with per-type TTLs and a capacity ceiling.

Performance records written here are aggregated into content patterns, which the
strategy selector reads as a prior. The in-process index is guarded by a lock;
reads copy a snapshot under the lock and filter outside it. Mutations also hold a
write lock across the backend write-through, so the backend sees changes in the
same order as the index and readers never wait on disk I/O.
"""

import hashlib
import logging
import threading
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from agentrag.core import config
from agentrag.core.errors import StoreError
from agentrag.core.memory_backend import InMemoryBackend, MemoryBackend
from agentrag.schemas.content import Complexity, ContentProfile, ContentType
from agentrag.schemas.memory import (
    ContentPattern,
    MemoryEntry,
    MemoryQuery,
    MemoryStats,
    MemoryType,
    PerformanceRecord,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def default_ttls() -> dict[MemoryType, int]:
    return {
        MemoryType.PERFORMANCE_RECORD: config.PERFORMANCE_TTL_SECONDS,
        MemoryType.CONTENT_PATTERN: config.PATTERN_TTL_SECONDS,
        MemoryType.CONTENT_ANALYSIS: config.ANALYSIS_TTL_SECONDS,
        MemoryType.USER_PREFERENCES: config.PREFERENCES_TTL_SECONDS,
    }


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def analysis_key(content: str, url: str | None = None, metadata: dict[str, Any] | None = None) -> str:
    """Cache key over everything the analyzer reads: content, URL and metadata type hints."""
    metadata = metadata or {}
    parts = [content, url or "", str(metadata.get("type", "")), str(metadata.get("content_type", ""))]
    return f"analysis:{content_hash(chr(0).join(parts))}"


def pattern_key(content_type: ContentType, complexity: Complexity, fingerprint: str) -> str:
    return f"pattern:{content_type.value}:{complexity.value}:{fingerprint or '-'}"


class MemoryStore:
    """Thread-safe memory of performance records, content patterns, cached analyses and preferences."""

    def __init__(
        self,
        backend: MemoryBackend | None = None,
        *,
        max_entries: int = config.MEMORY_MAX_ENTRIES,
        ttls: dict[MemoryType, int] | None = None,
        smoothing: float = config.PATTERN_SMOOTHING,
        clock: Clock | None = None,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._backend: MemoryBackend = backend or InMemoryBackend()
        self._max_entries = max_entries
        self._ttls = {**default_ttls(), **(ttls or {})}
        self._smoothing = smoothing
        self._clock: Clock = clock or utc_now
        self._entries: dict[str, MemoryEntry] = {}
        # Lock order: _write_lock, then _lock.
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        """Index the backend's live entries; expired and over-capacity rows are purged from it."""
        try:
            stored = self._backend.load_all()
        except StoreError as e:
            logger.warning("[memory_store:load] backend unavailable, starting empty: %s", e.message)
            return
        now = self.now()
        with self._write_lock:
            with self._lock:
                stale = []
                for entry in stored:
                    if entry.expires_at > now:
                        self._entries[entry.key] = entry
                    else:
                        stale.append(entry.key)
                stale.extend(self._enforce_capacity_locked())
            if stale:
                try:
                    self._backend.delete(stale)
                except StoreError as e:
                    logger.warning("[memory_store:load] could not purge %d stale rows: %s", len(stale), e.message)
        logger.info("[memory_store:load] OUT entries=%d purged=%d", len(self._entries), len(stale))

    # --- primitives ---

    def now(self) -> datetime:
        return self._clock()

    def ttl_for(self, entry_type: MemoryType) -> int:
        return self._ttls[entry_type]

    def new_entry(
        self,
        key: str,
        entry_type: MemoryType,
        data: dict[str, Any],
        *,
        tags: list[str] | tuple[str, ...] = (),
        source: str = "unknown",
        confidence: float = 0.5,
        ttl_seconds: float | None = None,
    ) -> MemoryEntry:
        """Build an entry stamped with the store clock and the type's TTL."""
        now = self.now()
        ttl = self.ttl_for(entry_type) if ttl_seconds is None else ttl_seconds
        return MemoryEntry(
            key=key,
            type=entry_type,
            data=data,
            tags=tuple(tags),
            source=source,
            confidence=confidence,
            created_at=now,
            expires_at=now + timedelta(seconds=max(0.0, ttl)),
        )

    def put(self, entry: MemoryEntry) -> None:
        """
        Upsert an entry by key. A performance record also refreshes its content pattern.
        Raises StoreError if the persistence backend rejects the write; the in-process
        index keeps the entry either way.
        """
        with self._write_lock:
            with self._lock:
                self._entries[entry.key] = entry
                written = [entry]
                if entry.type == MemoryType.PERFORMANCE_RECORD:
                    pattern = self._aggregate_pattern_locked(entry)
                    if pattern is not None:
                        self._entries[pattern.key] = pattern
                        written.append(pattern)
                evicted = self._enforce_capacity_locked()
            logger.debug("[memory_store:put] key=%s type=%s evicted=%d", entry.key, entry.type.value, len(evicted))
            self._backend.save([e for e in written if e.key not in evicted])
            if evicted:
                self._backend.delete(evicted)

    def get(self, key: str) -> MemoryEntry | None:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or entry.expires_at <= self.now():
            return None
        return entry

    def query(self, criteria: MemoryQuery | None = None) -> list[MemoryEntry]:
        """Filter live entries by the given criteria; unset criteria are ignored."""
        criteria = criteria or MemoryQuery()
        now = self.now()
        results = []
        for entry in self._snapshot():
            if entry.expires_at <= now:
                continue
            if criteria.type is not None and entry.type != criteria.type:
                continue
            if criteria.tags and not any(tag in entry.tags for tag in criteria.tags):
                continue
            if criteria.source is not None and entry.source != criteria.source:
                continue
            if criteria.min_confidence is not None and entry.confidence < criteria.min_confidence:
                continue
            if criteria.max_age_seconds is not None:
                if (now - entry.created_at).total_seconds() > criteria.max_age_seconds:
                    continue
            results.append(entry)

        sort_field = criteria.sort_by
        results.sort(key=lambda e: e.key)
        results.sort(key=lambda e: getattr(e, sort_field), reverse=criteria.sort_order == "desc")
        if criteria.limit is not None:
            results = results[: criteria.limit]
        return results

    def cleanup_expired(self) -> int:
        """Remove every entry whose expiry has passed. Returns the number removed."""
        now = self.now()
        with self._write_lock:
            with self._lock:
                expired = [key for key, e in self._entries.items() if e.expires_at <= now]
                for key in expired:
                    del self._entries[key]
            if expired:
                self._backend.delete(expired)
        logger.info("[memory_store:cleanup_expired] OUT removed=%d", len(expired))
        return len(expired)

    def clear_all(self) -> None:
        with self._write_lock:
            with self._lock:
                self._entries.clear()
            self._backend.clear()
        logger.info("[memory_store:clear_all] all entries removed")

    def stats(self) -> MemoryStats:
        now = self.now()
        live = [e for e in self._snapshot() if e.expires_at > now]
        by_type = Counter(e.type.value for e in live)
        usage = sum(len(e.model_dump_json()) for e in live)
        return MemoryStats(
            entry_count=len(live),
            memory_usage_estimate=usage,
            oldest_entry=min((e.created_at for e in live), default=None),
            newest_entry=max((e.created_at for e in live), default=None),
            entries_by_type=dict(by_type),
            average_confidence=(sum(e.confidence for e in live) / len(live)) if live else 0.0,
        )

    def _snapshot(self) -> list[MemoryEntry]:
        with self._lock:
            return list(self._entries.values())

    def _enforce_capacity_locked(self) -> list[str]:
        overflow = len(self._entries) - self._max_entries
        if overflow <= 0:
            return []
        oldest = sorted(self._entries.values(), key=lambda e: (e.created_at, e.key))[:overflow]
        evicted = [e.key for e in oldest]
        for key in evicted:
            del self._entries[key]
        logger.info("[memory_store] capacity reached, evicted=%d", len(evicted))
        return evicted

    def _aggregate_pattern_locked(self, entry: MemoryEntry) -> MemoryEntry | None:
        """Recompute the content pattern for the record's (type, complexity, fingerprint)."""
        try:
            record = PerformanceRecord.model_validate(entry.data)
        except ValueError as e:
            logger.warning("[memory_store:aggregate] key=%s not a performance record: %s", entry.key, e)
            return None
        now = self.now()
        matching = []
        for other in self._entries.values():
            if other.type != MemoryType.PERFORMANCE_RECORD or other.expires_at <= now:
                continue
            data = other.data
            if (
                data.get("content_type") == record.content_type.value
                and data.get("complexity") == record.complexity.value
                and data.get("fingerprint", "") == record.fingerprint
            ):
                matching.append(data)

        occurrences = len(matching)
        pattern = ContentPattern(
            content_type=record.content_type,
            complexity=record.complexity,
            fingerprint=record.fingerprint,
            occurrences=occurrences,
            confidence=occurrences / (occurrences + self._smoothing),
            optimal_strategy=_modal_strategy(matching),
            last_seen=record.timestamp,
        )
        return MemoryEntry(
            key=pattern_key(record.content_type, record.complexity, record.fingerprint),
            type=MemoryType.CONTENT_PATTERN,
            data=pattern.model_dump(mode="json"),
            tags=(record.content_type.value, record.complexity.value),
            source="memory-store",
            confidence=pattern.confidence,
            created_at=now,
            expires_at=now + timedelta(seconds=self.ttl_for(MemoryType.CONTENT_PATTERN)),
        )

    # --- performance records and patterns ---

    def record_performance(self, record: PerformanceRecord, source: str = "dispatcher") -> str:
        key = f"perf:{record.strategy_name}:{record.content_type.value}:{record.complexity.value}:{uuid.uuid4().hex[:12]}"
        entry = self.new_entry(
            key,
            MemoryType.PERFORMANCE_RECORD,
            record.model_dump(mode="json"),
            tags=(record.strategy_name, record.content_type.value, record.complexity.value, record.device_type),
            source=source,
            confidence=0.9 if record.success else 0.3,
        )
        self.put(entry)
        return key

    def performance_records(
        self,
        strategy_name: str | None = None,
        content_type: ContentType | None = None,
        complexity: Complexity | None = None,
        device_type: str | None = None,
    ) -> list[PerformanceRecord]:
        """Live performance records matching every given filter, newest first."""
        records = []
        for entry in self.query(MemoryQuery(type=MemoryType.PERFORMANCE_RECORD)):
            record = PerformanceRecord.model_validate(entry.data)
            if strategy_name is not None and record.strategy_name != strategy_name:
                continue
            if content_type is not None and record.content_type != content_type:
                continue
            if complexity is not None and record.complexity != complexity:
                continue
            if device_type is not None and record.device_type != device_type:
                continue
            records.append(record)
        return records

    def content_patterns(
        self,
        content_type: ContentType | None = None,
        complexity: Complexity | None = None,
    ) -> list[ContentPattern]:
        entries = self.query(MemoryQuery(type=MemoryType.CONTENT_PATTERN, sort_by="confidence"))
        patterns = [ContentPattern.model_validate(e.data) for e in entries]
        return [
            p
            for p in patterns
            if (content_type is None or p.content_type == content_type)
            and (complexity is None or p.complexity == complexity)
        ]

    def get_pattern(self, content_type: ContentType, complexity: Complexity, fingerprint: str) -> ContentPattern | None:
        entry = self.get(pattern_key(content_type, complexity, fingerprint))
        return ContentPattern.model_validate(entry.data) if entry else None

    # --- cached analyses ---

    def remember_analysis(
        self,
        content: str,
        profile: ContentProfile,
        url: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        entry = self.new_entry(
            analysis_key(content, url, metadata),
            MemoryType.CONTENT_ANALYSIS,
            profile.model_dump(mode="json"),
            tags=(profile.type.value, profile.complexity.value, profile.domain),
            source="content-analyzer",
            confidence=profile.confidence,
        )
        self.put(entry)

    def recall_analysis(
        self,
        content: str,
        url: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ContentProfile | None:
        entry = self.get(analysis_key(content, url, metadata))
        if entry is None:
            return None
        return ContentProfile.model_validate(entry.data).model_copy(update={"analyzed_by": "cache"})

    # --- preferences ---

    @staticmethod
    def preferences_key(user_id: str | None = None, session_id: str | None = None) -> str | None:
        if user_id:
            return f"prefs:user:{user_id}"
        if session_id:
            return f"prefs:session:{session_id}"
        return None

    def store_preferences(
        self,
        preferences: dict[str, Any],
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> str:
        key = self.preferences_key(user_id, session_id)
        if key is None:
            raise ValueError("user_id or session_id is required to store preferences")
        tags = [t for t in (user_id, session_id) if t]
        self.put(self.new_entry(key, MemoryType.USER_PREFERENCES, dict(preferences), tags=tags, source="user", confidence=1.0))
        return key

    def get_preferences(self, user_id: str | None = None, session_id: str | None = None) -> dict[str, Any] | None:
        key = self.preferences_key(user_id, session_id)
        if key is None:
            return None
        entry = self.get(key)
        return dict(entry.data) if entry else None


def _modal_strategy(records: list[dict[str, Any]]) -> str | None:
    """Most frequent strategy; ties go to higher mean accuracy, then name."""
    if not records:
        return None
    counts: Counter[str] = Counter()
    accuracy: dict[str, float] = {}
    for data in records:
        name = data.get("strategy_name", "")
        counts[name] += 1
        accuracy[name] = accuracy.get(name, 0.0) + float(data.get("performance", {}).get("actual_accuracy", 0.0))
    return min(counts, key=lambda n: (-counts[n], -accuracy[n] / counts[n], n))
