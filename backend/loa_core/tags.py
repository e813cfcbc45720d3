"""
Tag normalization.

Tags arrive either as a list of strings or as JSON-encoded text (multipart
form clients send them that way). They are decoded once, here, into a plain
list of strings. Text that does not decode to a list yields an empty list and
a warning instead of an error.
"""

from dataclasses import dataclass
from typing import List, Optional, Union
import json
import logging

logger = logging.getLogger(__name__)

RawTags = Union[List[str], str, None]

TAG_DECODE_WARNING = "Tags could not be decoded and were ignored"


@dataclass
class TagNormalization:
    tags: List[str]
    warning: Optional[str] = None


def normalize_tags(raw: RawTags) -> TagNormalization:
    if raw is None or raw == "":
        return TagNormalization([])

    if isinstance(raw, list):
        return TagNormalization([str(t) for t in raw])

    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"[TAGS] Failed to parse tags string, using empty list: {e}")
        return TagNormalization([], TAG_DECODE_WARNING)

    if not isinstance(parsed, list):
        logger.warning(f"[TAGS] Decoded tags are not a list ({type(parsed).__name__}), using empty list")
        return TagNormalization([], TAG_DECODE_WARNING)

    return TagNormalization([str(t) for t in parsed])
