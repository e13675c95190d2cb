"""
Output Parser for LLM Responses

Decodes untrusted JSON replies from providers into a tagged result:
Ok(value) when a JSON value could be read, Malformed(raw) otherwise.
Callers decide their own default for Malformed; nothing here raises.

Accepted shapes, in order:
- the whole reply is JSON
- a ```json fenced block
- the first {...} span in the reply
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Union

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)
_BRACED_SPAN = re.compile(r"\{.*\}", re.DOTALL)


@dataclass(frozen=True)
class Ok:
    """Successfully decoded JSON value."""
    value: Any


@dataclass(frozen=True)
class Malformed:
    """Reply that could not be decoded."""
    raw: str
    reason: str = ""


DecodeResult = Union[Ok, Malformed]


def _try_loads(text: str):
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return False, None


def decode_json(raw: Any) -> DecodeResult:
    """Best-effort JSON decode of an LLM reply."""
    text = str(raw or "").strip()
    if not text:
        return Malformed(text, "empty response")

    ok, value = _try_loads(text)
    if ok:
        return Ok(value)

    for block in _FENCED_BLOCK.findall(text):
        ok, value = _try_loads(block)
        if ok:
            return Ok(value)

    span = _BRACED_SPAN.search(text)
    if span:
        ok, value = _try_loads(span.group(0))
        if ok:
            return Ok(value)

    return Malformed(text, "no JSON value found")


def decode_json_object(raw: Any) -> DecodeResult:
    """Like decode_json, but only a JSON object counts as Ok."""
    result = decode_json(raw)
    if isinstance(result, Ok) and not isinstance(result.value, dict):
        return Malformed(str(raw or ""), f"expected JSON object, got {type(result.value).__name__}")
    return result
