"""
Input collectors (read-only, concurrent).

Collectors gather the raw inputs of one diagnostic run from the cluster data source.
Only the subject resource being unreadable is fatal; everything else degrades and is
recorded as an error string.
"""

from doctor.collectors.pod import FetchResult, PodInputs, collect_pod_inputs

__all__ = [
    "FetchResult",
    "PodInputs",
    "collect_pod_inputs",
]
