"""Pattern library for known failure modes.

Catalogs are immutable tuples of ErrorPattern built at import time. Order matters: it is
the order PatternMatches are reported in.
"""

from doctor.diagnostics.patterns.log_patterns import LOG_PATTERNS

ALL_PATTERNS = LOG_PATTERNS

__all__ = ["ALL_PATTERNS", "LOG_PATTERNS"]
