"""
Deterministic log analysis for known failure signatures and repeated errors.

Pure pattern matching module - no ML, no LLM. Turns a raw log body into:
- error / warning lines (keyword based)
- catalog signature matches with causes and solutions
- repeated-error clusters (normalized message grouping)
- a summary and ordered recommendations
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Sequence

from doctor.config import DoctorConfig, load_doctor_config
from doctor.core.errors import LogAnalysisError
from doctor.core.models import LogAnalysis, LogEntry, LogLevel, PatternMatch, RepeatedError, Severity
from doctor.core.retry import execute, retry_options_from_config
from doctor.diagnostics.log_pattern_matcher import LogPatternMatcher
from doctor.diagnostics.patterns import ALL_PATTERNS
from doctor.providers.k8s_provider import K8sProvider, get_k8s_provider

logger = logging.getLogger(__name__)

ERROR_KEYWORDS = (
    "error",
    "exception",
    "fatal",
    "panic",
    "failed",
    "failure",
    "err:",
    "traceback",
    "stacktrace",
)

WARNING_KEYWORDS = ("warn", "warning", "deprecated")

REPEATED_ERROR_MIN_COUNT = 3
MAX_PATTERN_RECOMMENDATIONS = 3

_TIMESTAMP_RE = re.compile(r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?")
_IPV4_RE = re.compile(r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}")
_PORT_RE = re.compile(r":\d{2,5}")
_HEX_RE = re.compile(r"0x[0-9a-f]+", re.IGNORECASE)
_DIGITS_RE = re.compile(r"\d+")

_DEFAULT_MATCHER = LogPatternMatcher(ALL_PATTERNS)


def split_log_lines(text: Optional[str]) -> List[str]:
    """Non-blank lines of a log body; line numbers used everywhere are 1-based into this list."""
    # Only "\n" separates lines; form feeds and other Unicode breaks stay inside the line.
    return [line.rstrip("\r") for line in (text or "").split("\n") if line.strip()]


def extract_timestamp(line: str) -> Optional[str]:
    m = _TIMESTAMP_RE.search(line)
    return m.group(0) if m else None


def _extract_keyword_lines(lines: Sequence[str], keywords: Sequence[str], level: LogLevel) -> List[LogEntry]:
    out: List[LogEntry] = []
    for idx, line in enumerate(lines, start=1):
        lower = line.lower()
        if any(k in lower for k in keywords):
            out.append(LogEntry(line_number=idx, content=line, timestamp=extract_timestamp(line), level=level))
    return out


def extract_error_lines(lines: Sequence[str]) -> List[LogEntry]:
    return _extract_keyword_lines(lines, ERROR_KEYWORDS, "ERROR")


def extract_warning_lines(lines: Sequence[str]) -> List[LogEntry]:
    return _extract_keyword_lines(lines, WARNING_KEYWORDS, "WARN")


def normalize_error_message(message: str) -> str:
    """
    Collapse the variable parts of an error line so similar errors group together.

    Idempotent: no digits survive the first pass, so a second pass changes nothing.
    """
    s = _TIMESTAMP_RE.sub("<timestamp>", message)
    s = _IPV4_RE.sub("<ip>", s)
    s = _PORT_RE.sub(":<port>", s)
    s = _HEX_RE.sub("<hex>", s)
    s = _DIGITS_RE.sub("<num>", s)
    return s.lower().strip()


def find_repeated_errors(error_lines: Sequence[LogEntry]) -> List[RepeatedError]:
    groups: Dict[str, List[int]] = {}
    for entry in error_lines:
        groups.setdefault(normalize_error_message(entry.content), []).append(entry.line_number)

    repeated = [
        RepeatedError(
            message=message,
            count=len(line_numbers),
            first_line=line_numbers[0],
            last_line=line_numbers[-1],
            is_pattern=True,
        )
        for message, line_numbers in groups.items()
        if len(line_numbers) >= REPEATED_ERROR_MIN_COUNT
    ]
    # Stable: equal counts keep first-seen order.
    repeated.sort(key=lambda r: -r.count)
    return repeated


def build_summary(total_lines: int, error_lines: Sequence[LogEntry], patterns: Sequence[PatternMatch]) -> str:
    lines = [f"Analyzed {total_lines} lines of logs.", f"Errors: {len(error_lines)}"]
    if patterns:
        lines.append("")
        lines.append(f"Detected {len(patterns)} error patterns:")
        for p in patterns:
            lines.append(f"  - {p.name} ({len(p.matched_lines)} occurrences)")
    else:
        lines.append("")
        lines.append("No known error patterns detected.")
    return "\n".join(lines)


def build_recommendations(patterns: Sequence[PatternMatch], repeated_errors: Sequence[RepeatedError]) -> List[str]:
    """
    Ordered recommendations:
    1. critical signatures (named)
    2. the single most repeated error
    3. top solution for up to 3 signatures, most severe first
    """
    recommendations: List[str] = []

    critical = [p for p in patterns if p.severity == Severity.CRITICAL]
    if critical:
        names = ", ".join(p.name for p in critical)
        recommendations.append(f"🔴 Resolve {len(critical)} critical issue(s) as top priority: {names}")

    if repeated_errors:
        top = repeated_errors[0]
        recommendations.append(f'⚠️ "{top.message}" error is repeating {top.count} times. Find the root cause.')

    by_severity = sorted(patterns, key=lambda p: -p.severity.rank)
    for p in by_severity[:MAX_PATTERN_RECOMMENDATIONS]:
        if p.solutions:
            recommendations.append(f"💡 {p.name}: {p.solutions[0]}")

    if not recommendations:
        recommendations.append("✅ No special issues found in current logs.")
    return recommendations


def analyze_log_text(text: Optional[str], *, matcher: Optional[LogPatternMatcher] = None) -> LogAnalysis:
    """Analyze an already-fetched log body. Pure and deterministic."""
    lines = split_log_lines(text)
    error_lines = extract_error_lines(lines)
    warning_lines = extract_warning_lines(lines)
    patterns = (matcher or _DEFAULT_MATCHER).find_matches(lines)
    repeated = find_repeated_errors(error_lines)

    return LogAnalysis(
        total_lines=len(lines),
        error_lines=error_lines,
        warning_lines=warning_lines,
        patterns=patterns,
        repeated_errors=repeated,
        summary=build_summary(len(lines), error_lines, patterns),
        recommendations=build_recommendations(patterns, repeated),
    )


def analyze_logs(
    namespace: str,
    pod_name: str,
    container: Optional[str] = None,
    tail_lines: Optional[int] = None,
    *,
    provider: Optional[K8sProvider] = None,
    config: Optional[DoctorConfig] = None,
) -> LogAnalysis:
    """
    Fetch a container's log tail and analyze it.

    The fetch runs through the retry executor. If it still fails, the whole analysis fails:
    there is no partial analysis.
    """
    cfg = config or load_doctor_config()
    k8s = provider or get_k8s_provider()
    tail = tail_lines if tail_lines is not None else cfg.log_tail_lines

    try:
        text = execute(
            lambda: k8s.read_pod_log(pod_name=pod_name, namespace=namespace, container=container, tail_lines=tail),
            retry_options_from_config(cfg),
            description=f"read logs {namespace}/{pod_name}",
        )
    except Exception as e:
        raise LogAnalysisError(f"Log analysis failed: {e}") from e

    return analyze_log_text(text)
