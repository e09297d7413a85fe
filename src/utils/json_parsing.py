"""Tolerant JSON extraction from vision-model responses.

Models are asked for bare JSON but routinely wrap it in markdown fences,
prepend a sentence of preamble, or emit near-JSON (trailing commas,
single quotes, unquoted keys).  :func:`extract_json_object` tries, in
order:

1. Strip a ```json fence if present.
2. Slice the outermost ``{ ... }`` span.
3. ``json.loads`` the span.
4. Repair the common near-JSON mistakes and ``json.loads`` again.

It never raises.  A response with no recoverable object yields ``None``
and the caller falls back to conservative defaults.
"""

from __future__ import annotations

import json
import re
from typing import Any

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_UNQUOTED_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")
_SINGLE_QUOTED_RE = re.compile(r"'([^'\\]*(?:\\.[^'\\]*)*)'")


def _repair(text: str) -> str:
    repaired = _TRAILING_COMMA_RE.sub(r"\1", text)
    repaired = _UNQUOTED_KEY_RE.sub(r'\1"\2":', repaired)
    return _SINGLE_QUOTED_RE.sub(r'"\1"', repaired)


def extract_json_object(response: str | None) -> dict[str, Any] | None:
    """Return the first JSON object embedded in *response*, or ``None``.

    Parameters
    ----------
    response:
        Raw model output text.

    Returns
    -------
    dict or None
        The parsed object.  Arrays and scalars at the top level are
        rejected because every prompt in the pipeline asks for an object.
    """
    if not response:
        return None

    text = response.strip()
    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    candidate = text[start : end + 1]

    for attempt in (candidate, _repair(candidate)):
        try:
            parsed = json.loads(attempt)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
        return None
    return None
