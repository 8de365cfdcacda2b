"""
Content analyzer: classifies raw content by structure and complexity.

Signals are measured with lightweight regex heuristics; each content bucket has its
own scoring function so the classification can be checked in isolation. When an LLM
client is configured and the heuristic margin is thin, the model is asked for a
label; any LLM failure keeps the heuristic result.
"""

import logging
import math
import re
from typing import Any
from urllib.parse import urlparse

from agentrag.agents.llm import LLMClient
from agentrag.agents.scoring import clamp, normalized_margin
from agentrag.core import config
from agentrag.core.errors import AnalysisError, LLMError
from agentrag.schemas.content import Complexity, ContentProfile, ContentSignals, ContentType

logger = logging.getLogger(__name__)

# Buckets in tie-break priority order
BUCKET_PRIORITY: tuple[ContentType, ...] = (
    ContentType.STRUCTURED_DATA,
    ContentType.TECHNICAL,
    ContentType.CONVERSATIONAL,
    ContentType.ARTICLE,
)
HINT_BOOST = 1.5
WORDS_PER_MINUTE = 200

_TAG_RE = re.compile(r"<[^>]+>")
_HTML_HEADING_RE = re.compile(r"<h[1-6][^>]*>", re.IGNORECASE)
_MD_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+\S", re.MULTILINE)
_CAPS_TITLE_RE = re.compile(r"^[A-Z][A-Z \t]{10,}$", re.MULTILINE)
_HTML_TABLE_RE = re.compile(r"<table", re.IGNORECASE)
_HTML_ROW_RE = re.compile(r"<tr[\s>]", re.IGNORECASE)
_HTML_LIST_ITEM_RE = re.compile(r"<li[\s>]", re.IGNORECASE)
_MD_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+\S", re.MULTILINE)
_FENCE_RE = re.compile(r"^\s*```", re.MULTILINE)
_HTML_CODE_RE = re.compile(r"<(?:pre|code)[\s>]", re.IGNORECASE)
_INLINE_CODE_RE = re.compile(r"`[^`\n]+`")
_CODE_KEYWORD_RE = re.compile(
    r"\b(?:def|class|function|return|import|const|let|var|public|private|static|void|"
    r"async|await|lambda|elif|struct|impl|fn|func|package|namespace|println|printf|console\.log)\b"
)
_CODE_SYMBOL_RE = re.compile(r"==|!=|=>|->|::|&&|\|\||\+\+|[{};]\s*$", re.MULTILINE)
_LINK_RE = re.compile(r"<a\s[^>]*>|\[[^\]]*\]\([^)]*\)", re.IGNORECASE)
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+|\n{2,}")
_WORD_RE = re.compile(r"[^\W_]+(?:'[^\W_]+)?", re.UNICODE)
_NUMBER_RE = re.compile(r"^[-+]?[$€£]?\d[\d,.]*%?$")
_VOWEL_GROUP_RE = re.compile(r"[aeiouy]+")
_NON_ALPHA_RE = re.compile(r"[^a-z]")
_YAML_LINE_RE = re.compile(r"^\s*[\w\-\"']+\s*:\s*\S")

STRUCTURED_EXTENSIONS = frozenset({"json", "csv", "xml", "yaml", "yml", "tsv"})
TECHNICAL_EXTENSIONS = frozenset({"py", "js", "ts", "java", "go", "rs", "ipynb"})

TECHNICAL_TERMS = frozenset({
    "api", "endpoint", "function", "parameter", "parameters", "configuration", "config",
    "server", "client", "database", "algorithm", "install", "installation", "runtime",
    "compile", "compiler", "query", "http", "https", "json", "module", "library", "deploy",
    "request", "response", "variable", "method", "class", "interface", "schema", "thread",
    "cache", "latency", "protocol", "kernel", "debug", "repository", "dependency", "sdk",
    "cli", "token", "authentication", "deployment", "container", "cluster",
})
CONVERSATIONAL_TERMS = frozenset({
    "i", "you", "we", "me", "my", "your", "us", "our", "i'm", "you're", "we're",
    "hey", "hi", "hello", "thanks", "thank", "yeah", "okay", "ok", "lol", "please",
    "sure", "guess", "think", "feel",
})

LANGUAGE_WORDS: dict[str, frozenset[str]] = {
    "en": frozenset({"the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"}),
    "es": frozenset({"el", "la", "de", "que", "y", "a", "en", "un", "es", "se", "no", "te"}),
    "fr": frozenset({"le", "la", "de", "et", "à", "un", "il", "que", "ne", "se", "ce", "pas"}),
    "de": frozenset({"der", "die", "das", "und", "in", "den", "von", "zu", "dem", "mit", "sich", "des"}),
}

_HINT_TYPES: dict[str, ContentType] = {
    "structured": ContentType.STRUCTURED_DATA,
    "structured-data": ContentType.STRUCTURED_DATA,
    "data": ContentType.STRUCTURED_DATA,
    "table": ContentType.STRUCTURED_DATA,
    **{ext: ContentType.STRUCTURED_DATA for ext in STRUCTURED_EXTENSIONS},
    "technical": ContentType.TECHNICAL,
    "code": ContentType.TECHNICAL,
    "documentation": ContentType.TECHNICAL,
    "conversational": ContentType.CONVERSATIONAL,
    "chat": ContentType.CONVERSATIONAL,
    "transcript": ContentType.CONVERSATIONAL,
    "article": ContentType.ARTICLE,
    "blog": ContentType.ARTICLE,
    "news": ContentType.ARTICLE,
}


# --- signal extraction ---

def strip_markup(content: str) -> str:
    return _TAG_RE.sub(" ", content)


def count_tables(lines: list[str]) -> tuple[int, int]:
    """Markdown pipe tables: runs of 2+ lines with at least two pipes. Returns (tables, rows)."""
    tables = rows = run = 0
    for line in lines + [""]:
        if line.count("|") >= 2:
            run += 1
            continue
        if run >= 2:
            tables += 1
            rows += run
        run = 0
    return tables, rows


def extract_signals(content: str) -> ContentSignals:
    text = strip_markup(content)
    raw_lines = content.splitlines()
    lines = [ln for ln in raw_lines if ln.strip()]
    line_count = max(1, len(lines))
    words = text.split()
    word_count = len(words)
    tokens = [w.lower() for w in _WORD_RE.findall(text)]

    headings = (
        len(_HTML_HEADING_RE.findall(content))
        + len(_MD_HEADING_RE.findall(content))
        + len(_CAPS_TITLE_RE.findall(content))
    )
    md_tables, md_rows = count_tables(raw_lines)
    tables = len(_HTML_TABLE_RE.findall(content)) + md_tables
    table_rows = len(_HTML_ROW_RE.findall(content)) + md_rows
    list_items = len(_HTML_LIST_ITEM_RE.findall(content)) + len(_MD_LIST_ITEM_RE.findall(content))
    code_blocks = len(_FENCE_RE.findall(content)) // 2 + len(_HTML_CODE_RE.findall(content))
    code_tokens = (
        len(_CODE_KEYWORD_RE.findall(text))
        + len(_CODE_SYMBOL_RE.findall(text))
        + len(_INLINE_CODE_RE.findall(content))
    )
    numbers = sum(1 for w in words if _NUMBER_RE.match(w))

    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
    lengths = [len(s.split()) for s in sentences]
    avg_len = sum(lengths) / len(lengths) if lengths else 0.0
    variance = sum((n - avg_len) ** 2 for n in lengths) / len(lengths) if lengths else 0.0
    unique = len(set(tokens))

    return ContentSignals(
        word_count=word_count,
        char_count=len(content),
        line_count=len(lines),
        sentence_count=len(sentences),
        heading_count=headings,
        heading_density=headings / line_count,
        list_item_count=list_items,
        table_count=tables,
        table_row_count=table_rows,
        list_table_density=min(1.0, (list_items + table_rows) / line_count),
        code_token_count=code_tokens,
        code_block_count=code_blocks,
        numeric_density=numbers / word_count if word_count else 0.0,
        vocabulary_diversity=unique / math.sqrt(len(tokens)) if tokens else 0.0,
        avg_sentence_length=avg_len,
        sentence_length_variance=variance,
        link_count=len(_LINK_RE.findall(content)),
        question_count=text.count("?"),
        reading_time_minutes=word_count / WORDS_PER_MINUTE,
        readability_score=readability_score(len(tokens), len(sentences), estimate_syllables(tokens)),
    )


def estimate_syllables(tokens: list[str]) -> int:
    """Vowel groups per word; words of three letters or fewer count as one syllable."""
    total = 0
    for token in tokens:
        letters = _NON_ALPHA_RE.sub("", token)
        if not letters:
            continue
        total += 1 if len(letters) <= 3 else max(1, len(_VOWEL_GROUP_RE.findall(letters)))
    return total


def readability_score(word_count: int, sentence_count: int, syllables: int) -> float:
    """Flesch reading ease clamped to 0-100 (higher is easier); 50 when nothing can be measured."""
    if not word_count or not sentence_count:
        return 50.0
    score = 206.835 - 1.015 * (word_count / sentence_count) - 84.6 * (syllables / word_count)
    return round(clamp(score, 0.0, 100.0), 2)


def data_shape_bonus(content: str) -> float:
    """JSON, CSV or YAML shaped content."""
    stripped = content.strip()
    if (stripped.startswith("{") and stripped.endswith("}")) or (stripped.startswith("[") and stripped.endswith("]")):
        return 1.5
    lines = [ln for ln in stripped.splitlines() if ln.strip()]
    if len(lines) >= 3:
        commas = [ln.count(",") for ln in lines]
        if commas[0] >= 1 and sum(1 for c in commas if c == commas[0]) >= 0.8 * len(lines):
            return 1.5
        yaml_lines = sum(1 for ln in lines if _YAML_LINE_RE.match(ln))
        if yaml_lines >= 0.6 * len(lines):
            return 1.0
    return 0.0


# --- bucket scores ---

def structured_data_score(signals: ContentSignals, shape_bonus: float = 0.0) -> float:
    return (
        1.5 * min(1.0, signals.table_count / 2)
        + 2.0 * signals.list_table_density
        + 3.0 * min(1.0, signals.numeric_density)
        + shape_bonus
    )


def technical_score(signals: ContentSignals, tokens: list[str]) -> float:
    words = max(1, signals.word_count)
    term_ratio = sum(1 for t in tokens if t in TECHNICAL_TERMS) / words
    return (
        1.5 * min(1.0, signals.code_block_count / 2)
        + 1.5 * min(1.0, 10 * signals.code_token_count / words)
        + 0.8 * min(1.0, signals.heading_count / 8)
        + min(1.0, 20 * term_ratio)
    )


def conversational_score(signals: ContentSignals, tokens: list[str]) -> float:
    words = max(1, signals.word_count)
    sentences = max(1, signals.sentence_count)
    personal_ratio = sum(1 for t in tokens if t in CONVERSATIONAL_TERMS) / words
    short_sentences = 0.5 if 0 < signals.avg_sentence_length < 14 else 0.0
    structure_penalty = 0.5 * min(1.0, (signals.heading_count + signals.table_count + signals.code_block_count) / 3)
    score = (
        min(1.0, 2.5 * signals.question_count / sentences)
        + min(1.0, 6 * personal_ratio)
        + short_sentences
        - structure_penalty
    )
    return max(0.0, score)


def article_score(signals: ContentSignals) -> float:
    prose_share = 1.0 - min(1.0, 2 * signals.list_table_density)
    steady_sentences = 0.3 if 12 <= signals.avg_sentence_length <= 30 else 0.0
    return min(1.0, signals.word_count / 400) * prose_share + steady_sentences + 0.2 * min(1.0, signals.link_count / 5)


def complexity_score(signals: ContentSignals) -> float:
    structure = (
        signals.heading_count
        + 2 * signals.table_count
        + signals.code_block_count
        + signals.list_item_count / 5
    )
    return (
        0.5 * min(1.0, signals.word_count / 3000)
        + 0.25 * min(1.0, signals.vocabulary_diversity / 15)
        + 0.25 * min(1.0, structure / 20)
    )


def classify_complexity(score: float) -> Complexity:
    if score < config.COMPLEXITY_MEDIUM_THRESHOLD:
        return Complexity.SIMPLE
    if score < config.COMPLEXITY_COMPLEX_THRESHOLD:
        return Complexity.MEDIUM
    return Complexity.COMPLEX


def classify_type(scores: dict[ContentType, float]) -> tuple[ContentType, float]:
    """
    Winning bucket and its normalized margin over the runner-up.
    All-zero scores give unknown; an exact tie at the top gives mixed. Both report 0.5.
    """
    ranked = sorted(scores.items(), key=lambda kv: (-kv[1], BUCKET_PRIORITY.index(kv[0])))
    top_type, top = ranked[0]
    runner_up = ranked[1][1] if len(ranked) > 1 else 0.0
    if top <= 0:
        return ContentType.UNKNOWN, 0.5
    if top == runner_up:
        return ContentType.MIXED, 0.5
    return top_type, normalized_margin(top, runner_up)


def detect_language(tokens: list[str]) -> str:
    counts = {lang: sum(1 for t in tokens if t in words) for lang, words in LANGUAGE_WORDS.items()}
    best = max(counts, key=lambda lang: (counts[lang], lang == "en"))
    return best if counts[best] >= 3 else "en"


def extract_domain(url: str | None) -> str:
    if not url:
        return "unknown"
    try:
        return urlparse(url).hostname or "unknown"
    except ValueError:
        return "unknown"


def type_hints(url: str | None, metadata: dict[str, Any] | None) -> dict[ContentType, float]:
    """Score boosts from the URL extension/path and metadata type fields."""
    boosts: dict[ContentType, float] = {}
    if url:
        try:
            path = urlparse(url).path.lower()
        except ValueError:
            path = ""
        extension = path.rsplit(".", 1)[-1] if "." in path.rsplit("/", 1)[-1] else ""
        if extension in STRUCTURED_EXTENSIONS:
            boosts[ContentType.STRUCTURED_DATA] = HINT_BOOST
        elif extension in TECHNICAL_EXTENSIONS or re.search(r"/(?:api|docs)(?:/|$)", path):
            boosts[ContentType.TECHNICAL] = HINT_BOOST
    for field in ("type", "content_type"):
        value = str((metadata or {}).get(field, "")).strip().lower()
        hinted = _HINT_TYPES.get(value)
        if hinted is not None:
            boosts[hinted] = boosts.get(hinted, 0.0) + HINT_BOOST
    return boosts


def fingerprint(signals: ContentSignals) -> str:
    """Compact key-signal flags, e.g. h1-t0-l1-c0-n0."""
    flags = (
        ("h", signals.heading_count > 0),
        ("t", signals.table_count > 0),
        ("l", signals.list_item_count > 0),
        ("c", signals.code_block_count > 0 or signals.code_token_count >= 5),
        ("n", signals.numeric_density >= 0.1),
    )
    return "-".join(f"{name}{int(flag)}" for name, flag in flags)


class ContentAnalyzer:
    def __init__(self, llm: LLMClient | None = None, max_chars: int = config.MAX_CONTENT_CHARS):
        self.llm = llm
        self.max_chars = max_chars

    def analyze(
        self,
        content: str,
        url: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ContentProfile:
        """
        Classify content into a ContentProfile.
        Raises AnalysisError when content is empty or longer than max_chars.
        """
        if content is None or not content.strip():
            raise AnalysisError("Content is empty")
        if len(content) > self.max_chars:
            raise AnalysisError(f"Content exceeds maximum size ({len(content)} > {self.max_chars} chars)")
        logger.info("[content_analyzer:analyze] IN  chars=%d url=%r", len(content), url)

        signals = extract_signals(content)
        tokens = [w.lower() for w in _WORD_RE.findall(strip_markup(content))]
        scores = {
            ContentType.STRUCTURED_DATA: structured_data_score(signals, data_shape_bonus(content)),
            ContentType.TECHNICAL: technical_score(signals, tokens),
            ContentType.CONVERSATIONAL: conversational_score(signals, tokens),
            ContentType.ARTICLE: article_score(signals),
        }
        for bucket, boost in type_hints(url, metadata).items():
            scores[bucket] = scores.get(bucket, 0.0) + boost

        content_type, confidence = classify_type(scores)
        analyzed_by = "heuristic"
        if self.llm is not None and confidence < config.ANALYZER_LLM_THRESHOLD:
            label = self._ask_llm(content)
            if label is not None:
                content_type = label
                confidence = max(confidence, config.ANALYZER_LLM_THRESHOLD)
                analyzed_by = "llm"

        profile = ContentProfile(
            type=content_type,
            complexity=classify_complexity(complexity_score(signals)),
            confidence=clamp(confidence),
            signals=signals,
            type_scores={t.value: round(scores[t], 4) for t in BUCKET_PRIORITY},
            language=detect_language(tokens),
            domain=extract_domain(url),
            fingerprint=fingerprint(signals),
            analyzed_by=analyzed_by,
        )
        logger.info(
            "[content_analyzer:analyze] OUT type=%s complexity=%s confidence=%.3f by=%s",
            profile.type.value, profile.complexity.value, profile.confidence, analyzed_by,
        )
        return profile

    def _ask_llm(self, content: str) -> ContentType | None:
        labels = ", ".join(t.value for t in BUCKET_PRIORITY)
        prompt = (
            f"Classify the following content as exactly one of: {labels}.\n"
            "Reply with the label only.\n\n"
            f"{content[:2000]}"
        )
        try:
            reply = self.llm.complete(prompt, max_tokens=8)
        except LLMError as e:
            logger.warning("[content_analyzer:llm] falling back to heuristic: %s", e.message)
            return None
        except Exception as e:
            logger.warning("[content_analyzer:llm] client raised %s, falling back to heuristic: %s", type(e).__name__, e)
            return None
        answer = reply.text.strip().lower()
        for bucket in BUCKET_PRIORITY:
            if bucket.value in answer:
                return bucket
        logger.warning("[content_analyzer:llm] unparseable label %r; keeping heuristic", reply.text[:50])
        return None
