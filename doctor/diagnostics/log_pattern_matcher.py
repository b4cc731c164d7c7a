"""Log signature matching (reusable across analyzers)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from doctor.core.models import PatternMatch, Severity


@dataclass(frozen=True)
class ErrorPattern:
    """A known failure signature: regexes plus the causes and fixes that go with it.

    Catalog entries are process-wide constants; never mutate them.
    """

    name: str
    """Human-readable name (e.g., 'Connection Refused')"""

    patterns: Tuple[str, ...]
    """Regexes tested case-insensitively against a single log line"""

    description: str

    causes: Tuple[str, ...]
    """Possible causes, most likely first"""

    solutions: Tuple[str, ...]
    """Remediation steps, most effective first (may embed commands or YAML)"""

    severity: Severity

    _compiled: Tuple[re.Pattern, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_compiled", tuple(re.compile(p, re.IGNORECASE) for p in self.patterns))

    def matches(self, line: str) -> bool:
        """Check if any regex matches the line (case-insensitive)."""
        return any(rx.search(line) for rx in self._compiled)


class LogPatternMatcher:
    """Tests every log line against a catalog of ErrorPatterns.

    Usage:
        matcher = LogPatternMatcher(LOG_PATTERNS)
        for match in matcher.find_matches(lines):
            print(match.name, match.matched_lines)
    """

    def __init__(self, patterns: Sequence[ErrorPattern]):
        self.patterns = tuple(patterns)

    def find_matches(self, lines: Sequence[str]) -> List[PatternMatch]:
        """Match lines against all patterns, in catalog order.

        A PatternMatch is produced only for signatures that matched at least one line;
        `matched_lines` holds 1-based line numbers into `lines`.
        """
        matches: List[PatternMatch] = []
        for pattern in self.patterns:
            matched = [i for i, line in enumerate(lines, start=1) if pattern.matches(line)]
            if not matched:
                continue
            matches.append(
                PatternMatch(
                    name=pattern.name,
                    matched_lines=matched,
                    description=pattern.description,
                    possible_causes=list(pattern.causes),
                    solutions=list(pattern.solutions),
                    severity=pattern.severity,
                )
            )
        return matches
