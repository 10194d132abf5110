"""Best-effort action payload recovery from free-form model text."""

from __future__ import annotations

import json
import logging
import re

from actionflow.actions.models import ActionPayload
from actionflow.errors import InvalidActionPayload

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_COMMAND_MARKER = '{"command"'


def extract_action_payload(text: str | None) -> ActionPayload | None:
    """Return the first valid action payload found in `text`, or None.

    Fenced code blocks are tried in order. Without a match, the first
    `{"command"` object is cut out with a balanced-brace scan. The scan
    counts every brace, including braces inside JSON strings, so such
    payloads are only recovered from fenced blocks.
    """

    if not text:
        return None

    for match in _FENCED_BLOCK.finditer(text):
        payload = _try_parse_action(match.group(1))
        if payload is not None:
            return payload

    start = text.find(_COMMAND_MARKER)
    if start == -1:
        return None
    return _try_parse_action(balanced_object_at(text, start))


def balanced_object_at(text: str, start: int) -> str:
    """Cut the `{...}` span starting at `start` by counting braces."""

    depth = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return text[start:]


def _try_parse_action(snippet: str) -> ActionPayload | None:
    try:
        parsed = json.loads(snippet.strip())
    except (json.JSONDecodeError, RecursionError):
        return None
    if not isinstance(parsed, dict) or not isinstance(parsed.get("command"), str):
        return None
    try:
        return ActionPayload.from_mapping(parsed)
    except InvalidActionPayload as error:
        logger.debug("Discarding action candidate: %s", error)
        return None
