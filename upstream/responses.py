"""
Lenient parsing of upstream bodies. The provider answers OAuth endpoints with
form-encoded bodies and the API with JSON; both become a string-keyed dict.
"""
import json
from typing import Any
from urllib.parse import parse_qsl

from upstream.config import MAX_RAW_RESPONSE_LENGTH


def parse_response(text: str) -> dict[str, Any]:
    """
    Parse JSON first, then query-string. Anything else (or a non-object JSON value)
    is wrapped as {"raw": <truncated text>}.
    """
    try:
        data = json.loads(text)
    except ValueError:
        data = None
    else:
        if isinstance(data, dict):
            return data
        return {"raw": text[:MAX_RAW_RESPONSE_LENGTH]}

    pairs = parse_qsl(text, keep_blank_values=True)
    result = {key: value for key, value in pairs}
    if not result or (len(result) == 1 and next(iter(result.values())) == ""):
        return {"raw": text[:MAX_RAW_RESPONSE_LENGTH]}
    return result
