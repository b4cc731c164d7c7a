"""Exception hierarchy for diagnostic runs.

Callers receive either a complete result or one of these errors. Degraded (best-effort)
fetches never raise; only the subject resource being unreadable is fatal.
"""

from __future__ import annotations

from typing import Optional


class DoctorError(Exception):
    """Base class for all errors raised by this package."""


class ProviderError(DoctorError):
    """
    A read against the cluster data source failed.

    `status` carries the HTTP status of the underlying API response (when there was one),
    `code` an errno-style symbol (ECONNREFUSED, ETIMEDOUT, ENOTFOUND) for transport failures.
    Both are read by the retry policy.
    """

    def __init__(self, message: str, *, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.code = code


class PodFetchError(DoctorError):
    """The pod under diagnosis could not be read (retry budget exhausted)."""


class LogAnalysisError(DoctorError):
    pass


class CrashLoopDiagnosisError(DoctorError):
    pass


class ClusterHealthError(DoctorError):
    pass
