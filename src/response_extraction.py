"""
Pull a JSON array of shows out of free-form model output.

The model is asked for a fenced JSON block but is not bound to a schema: it
may answer with prose around a bare array, or wrap the array in an object.
"""

import json
import logging
import re

from errors import EmptyResponseError, MalformedPayloadError, UnexpectedShapeError

logger = logging.getLogger(__name__)

JSON_BLOCK_PATTERN = re.compile(r"```json\s*(.*?)\s*```", re.IGNORECASE | re.DOTALL)

def isolate_json_text(text):
    """
    Return the part of ``text`` most likely to hold the JSON array.

    Tries, in order: a fenced block tagged ``json``, the span from the first
    ``[`` to the last ``]``, then the whole text.
    """
    clean = text.strip()

    match = JSON_BLOCK_PATTERN.search(clean)
    if match and match.group(1):
        return match.group(1).strip()

    first_bracket = clean.find("[")
    last_bracket = clean.rfind("]")
    if first_bracket != -1 and last_bracket > first_bracket:
        return clean[first_bracket:last_bracket + 1]

    return clean

def extract_show_array(text):
    """
    Parse the list of raw show objects contained in a model response.

    Args:
        text: Raw model output

    Returns:
        List of parsed JSON values (normally dicts)

    Raises:
        EmptyResponseError: ``text`` is missing or blank
        MalformedPayloadError: the isolated text is not valid JSON
        UnexpectedShapeError: the JSON holds no array
    """
    if text is None or not str(text).strip():
        raise EmptyResponseError()

    candidate = isolate_json_text(str(text))

    try:
        parsed = json.loads(candidate)
    except ValueError as e:
        logger.warning("Failed to parse JSON. Raw text snippet: %s...", candidate[:100])
        raise MalformedPayloadError() from e

    if isinstance(parsed, list):
        return parsed

    # Handle {"shows": [...]} style wrappers
    if isinstance(parsed, dict):
        for value in parsed.values():
            if isinstance(value, list):
                return value

    raise UnexpectedShapeError()
