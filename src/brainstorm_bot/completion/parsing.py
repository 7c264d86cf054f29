# brainstorm_bot/completion/parsing.py
"""Helpers for reading structured answers out of model text."""

from __future__ import annotations

import json
import re
from typing import Any

from ..exceptions import MalformedResponseError

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def extract_json(text: str) -> Any:
    """
    Parse JSON from a completion, tolerating markdown fences and chatter
    around a single object or array.

    Raises:
        MalformedResponseError: if no JSON value can be recovered
    """
    candidate = text.strip()
    fenced = _FENCE.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()

    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    for opener, closer in (("[", "]"), ("{", "}")):
        start, end = candidate.find(opener), candidate.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(candidate[start : end + 1])
            except json.JSONDecodeError:
                continue

    raise MalformedResponseError(f"Could not parse JSON from completion: {text[:80]!r}")


def extract_number(text: str) -> float:
    """
    Read the first number in ``text``.

    Raises:
        MalformedResponseError: if there is none
    """
    match = _NUMBER.search(text)
    if match is None:
        raise MalformedResponseError(f"Expected a number, got {text[:80]!r}")
    return float(match.group(0))


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))
