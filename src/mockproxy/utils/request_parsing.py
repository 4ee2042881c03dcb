import json
import logging
from typing import Any

logger = logging.getLogger("mockproxy")


def parse_body(raw_body: bytes, content_type: str) -> Any:
    """
    Parse a request body the way the fixture naming expects it.

    - application/json (and +json types)  → decoded JSON value
    - text/*                               → decoded string
    - anything else, or invalid JSON       → None
    """
    if not raw_body:
        return None

    media_type = (content_type or "").split(";", 1)[0].strip().lower()

    if media_type == "application/json" or media_type.endswith("+json"):
        try:
            return json.loads(raw_body)
        except (UnicodeDecodeError, ValueError):
            logger.debug("ℹ️ Request body is not valid JSON. Ignoring it for fixture naming.")
            return None

    if media_type.startswith("text/"):
        return raw_body.decode("utf-8", errors="replace")

    return None
