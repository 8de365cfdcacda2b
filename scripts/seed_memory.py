#!/usr/bin/env python3
"""
Seed the shared-memory SQLite DB with demo performance records.

Creates data/memory.db (or MEMORY_DB_PATH) if missing and writes performance
records for a few (content type, complexity) combinations, so strategy selection
has history to learn from. Content patterns are aggregated as the records land.
Use --reset to clear existing entries first.

Run from project root:

    python scripts/seed_memory.py
    python scripts/seed_memory.py --reset --runs 50
"""

import argparse
import random
import sys
from pathlib import Path

# Project root on path so "agentrag" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from agentrag.core import config
from agentrag.core.memory_backend import SqliteBackend
from agentrag.schemas.content import Complexity, ContentType
from agentrag.schemas.memory import PerformanceMetrics, PerformanceRecord
from agentrag.services.memory_store import MemoryStore
from agentrag.services.strategy_catalog import default_catalog

# (content type, complexity, fingerprint, strategy, mean accuracy, mean latency ms)
SEED_OUTCOMES = [
    (ContentType.TECHNICAL, Complexity.MEDIUM, "h1-t0-l1-c1-n0", "balanced", 0.86, 1800),
    (ContentType.TECHNICAL, Complexity.MEDIUM, "h1-t0-l1-c1-n0", "fast", 0.55, 700),
    (ContentType.TECHNICAL, Complexity.COMPLEX, "h1-t1-l1-c1-n0", "technical-deep", 0.9, 3900),
    (ContentType.ARTICLE, Complexity.SIMPLE, "h0-t0-l0-c0-n0", "conversational-quick", 0.72, 550),
    (ContentType.STRUCTURED_DATA, Complexity.MEDIUM, "h1-t1-l0-c0-n1", "structured-extract", 0.88, 2300),
    (ContentType.CONVERSATIONAL, Complexity.SIMPLE, "h0-t0-l0-c0-n0", "conversational-quick", 0.8, 500),
]


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the shared-memory DB for demos/tests.")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear all existing entries before seeding.",
    )
    parser.add_argument("--runs", type=int, default=20, help="Records per seed outcome (default 20).")
    parser.add_argument("--db", default=config.MEMORY_DB_PATH, help="SQLite path (default MEMORY_DB_PATH).")
    parser.add_argument("--seed", type=int, default=7, help="Random seed for jitter.")
    args = parser.parse_args()

    catalog = default_catalog()
    store = MemoryStore(SqliteBackend(args.db))
    if args.reset:
        store.clear_all()
        print("Cleared existing memory entries.")

    rng = random.Random(args.seed)
    total = 0
    for content_type, complexity, fingerprint, strategy_name, accuracy, latency in SEED_OUTCOMES:
        strategy = catalog.by_name(strategy_name)
        for _ in range(args.runs):
            record = PerformanceRecord(
                strategy_name=strategy.name,
                content_type=content_type,
                complexity=complexity,
                device_type=rng.choice(["desktop", "mobile", "tablet"]),
                performance=PerformanceMetrics(
                    predicted_latency_ms=strategy.latency_estimate_ms,
                    actual_latency_ms=max(50.0, rng.gauss(latency, latency * 0.1)),
                    predicted_accuracy=strategy.accuracy_estimate,
                    actual_accuracy=min(1.0, max(0.0, rng.gauss(accuracy, 0.05))),
                ),
                success=True,
                fingerprint=fingerprint,
                timestamp=store.now(),
            )
            store.record_performance(record, source="seed")
            total += 1
        print(f"  seeded: {strategy_name} on {content_type.value}/{complexity.value} x{args.runs}")

    stats = store.stats()
    print(f"Done. Seeded {total} records; store now holds {stats.entry_count} entries.")


if __name__ == "__main__":
    main()
