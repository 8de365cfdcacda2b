"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and tuning
constants for the orchestration core. Keeps the rest of the app decoupled from
how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

# OpenAI (primary LLM). When set, the dispatcher uses OpenAI chat completions.
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
)

# Hugging Face router (fallback LLM when OPENAI_API_KEY is not set)
HF_API_KEY: str = os.getenv("HF_API_KEY", "").strip()
HF_LLM_MODEL: str = (
    os.getenv("HF_LLM_MODEL", "meta-llama/Llama-3.2-3B-Instruct").strip()
    or "meta-llama/Llama-3.2-3B-Instruct"
)
HF_CHAT_URL: str = "https://router.huggingface.co/v1/chat/completions"

# API timeouts (seconds). Timeouts surface as execution errors; the core never retries.
LLM_API_TIMEOUT: float = _env_float("LLM_API_TIMEOUT", 60.0)

# Content analyzer
MAX_CONTENT_CHARS: int = _env_int("MAX_CONTENT_CHARS", 2_000_000)
COMPLEXITY_MEDIUM_THRESHOLD: float = 0.3
COMPLEXITY_COMPLEX_THRESHOLD: float = 0.6
# Below this heuristic confidence the analyzer asks the LLM (if one is configured)
ANALYZER_LLM_THRESHOLD: float = _env_float("ANALYZER_LLM_THRESHOLD", 0.55)

# Strategy selector weights (tuning these changes how fast history overrides static cost)
DEVICE_BONUS: float = _env_float("DEVICE_BONUS", 0.1)
PATTERN_PRIOR_WEIGHT: float = _env_float("PATTERN_PRIOR_WEIGHT", 0.05)
HISTORY_EVIDENCE_PRIOR: float = _env_float("HISTORY_EVIDENCE_PRIOR", 5.0)
HISTORY_HALF_LIFE_SECONDS: float = _env_float("HISTORY_HALF_LIFE_SECONDS", 24 * 3600.0)
LATENCY_PENALTY_WEIGHT: float = _env_float("LATENCY_PENALTY_WEIGHT", 0.2)
LATENCY_NORMALIZER_MS: float = _env_float("LATENCY_NORMALIZER_MS", 10_000.0)
SELECTION_CONFIDENCE_FLOOR: float = 0.1
SELECTION_CONFIDENCE_CAP: float = 0.95
MAX_ALTERNATIVES: int = 3

# Shared memory store
MEMORY_BACKEND: str = os.getenv("MEMORY_BACKEND", "memory").strip().lower() or "memory"
MEMORY_DB_PATH: str = os.getenv("MEMORY_DB_PATH", "data/memory.db").strip() or "data/memory.db"
MEMORY_MAX_ENTRIES: int = _env_int("MEMORY_MAX_ENTRIES", 10_000)
PERFORMANCE_TTL_SECONDS: int = _env_int("PERFORMANCE_TTL_SECONDS", 7 * 24 * 3600)
PATTERN_TTL_SECONDS: int = _env_int("PATTERN_TTL_SECONDS", 30 * 24 * 3600)
ANALYSIS_TTL_SECONDS: int = _env_int("ANALYSIS_TTL_SECONDS", 24 * 3600)
PREFERENCES_TTL_SECONDS: int = _env_int("PREFERENCES_TTL_SECONDS", 30 * 24 * 3600)
PATTERN_SMOOTHING: float = _env_float("PATTERN_SMOOTHING", 5.0)
MEMORY_CLEANUP_INTERVAL_SECONDS: float = _env_float("MEMORY_CLEANUP_INTERVAL_SECONDS", 3600.0)

# Workflow coordinator
WORKFLOW_HISTORY_CAPACITY: int = _env_int("WORKFLOW_HISTORY_CAPACITY", 500)
WORKFLOW_ACTIVE_SOFT_LIMIT: int = _env_int("WORKFLOW_ACTIVE_SOFT_LIMIT", 100)

# Dispatcher
RETRIEVAL_TOP_K: int = 5
CONTEXT_CHAR_BUDGET: int = 6000
