"""
IVChain Canonical JSON Encoding

Deterministic byte encoding for records and blocks. Semantically identical
records produce identical bytes on every platform.

Rules:
- Object keys sorted lexicographically (Unicode code point order)
- No whitespace between tokens (compact form)
- UTF-8 encoding, no BOM, non-ASCII kept verbatim
- Integers only: floats are rejected, scale at the boundary instead
- Arrays preserve order
"""

import json
from typing import Any, Dict, List, Union

from .vector import IVVector


def canonicalize(obj: Any) -> bytes:
    """
    Convert an object to canonical JSON bytes.

    Raises:
        ValueError: if the object contains floats or unsupported types
    """
    canonical = _canonicalize_value(obj)
    return json.dumps(canonical, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


def canonicalize_str(obj: Any) -> str:
    """Return canonical JSON as string."""
    return canonicalize(obj).decode('utf-8')


def _canonicalize_value(value: Any) -> Any:
    """Recursively canonicalize a value."""
    if value is None:
        return None
    elif isinstance(value, bool):
        return value
    elif isinstance(value, int):
        return value
    elif isinstance(value, float):
        raise ValueError(f"Floats are not canonical, use scaled integers: {value!r}")
    elif isinstance(value, str):
        return value
    elif isinstance(value, dict):
        return _canonicalize_object(value)
    elif isinstance(value, (list, tuple, IVVector)):
        return _canonicalize_array(value)
    else:
        raise ValueError(f"Cannot canonicalize type: {type(value)}")


def _canonicalize_object(obj: Dict[str, Any]) -> Dict[str, Any]:
    for k in obj:
        if not isinstance(k, str):
            raise ValueError(f"Object keys must be strings, got {type(k)}")
    return {k: _canonicalize_value(obj[k]) for k in sorted(obj.keys())}


def _canonicalize_array(arr: Union[List, tuple, IVVector]) -> List:
    return [_canonicalize_value(item) for item in arr]
