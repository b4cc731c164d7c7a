"""Kubernetes resource quantity parsing.

CPU is normalized to millicores, memory to bytes. Unparseable values yield None so callers
can treat them as "not declared" instead of inventing a number.
"""

from __future__ import annotations

import re
from typing import Optional, Union

_NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)\s*([A-Za-z]*)\s*$")

_MEMORY_UNITS = (
    ("Ki", 1024),
    ("Mi", 1024**2),
    ("Gi", 1024**3),
    ("Ti", 1024**4),
    ("Pi", 1024**5),
    ("Ei", 1024**6),
    ("k", 1000),
    ("K", 1000),
    ("M", 1000**2),
    ("G", 1000**3),
    ("T", 1000**4),
    ("P", 1000**5),
    ("E", 1000**6),
    ("m", 0.001),
)

_CPU_UNITS = {
    "": 1000.0,
    "m": 1.0,
    "u": 0.001,
    "n": 0.000001,
}

Quantity = Union[str, int, float, None]


def _split(value: Quantity) -> Optional[tuple]:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value), ""
    m = _NUMBER_RE.match(str(value))
    if not m:
        return None
    return float(m.group(1)), m.group(2)


def parse_cpu(value: Quantity) -> Optional[float]:
    """Parse a CPU quantity ("250m", "0.5", "2", "123456789n") into millicores."""
    parts = _split(value)
    if parts is None:
        return None
    number, suffix = parts
    factor = _CPU_UNITS.get(suffix)
    if factor is None:
        return None
    return number * factor


def parse_memory(value: Quantity) -> Optional[float]:
    """Parse a memory quantity ("128Mi", "1G", "524288Ki", "1048576") into bytes."""
    parts = _split(value)
    if parts is None:
        return None
    number, suffix = parts
    if not suffix:
        return number
    for unit, factor in _MEMORY_UNITS:
        if suffix == unit:
            return number * factor
    return None


MIB = 1024 * 1024
