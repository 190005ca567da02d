"""
JSON extraction from LLM text output.

WHAT: Pull a JSON object out of free-form completion text
WHY: Models wrap JSON in prose or code fences even when told not to
HOW: Fenced block first, then the outermost brace span; json.loads validates
"""

import json
import re
from typing import Any, Dict

from ..utils.logger import get_logger

logger = get_logger(__name__)

_FENCE_PATTERN = re.compile(r'```(?:json)?\s*(\{.*?\})\s*```', re.IGNORECASE | re.DOTALL)
_OBJECT_PATTERN = re.compile(r'\{.*\}', re.DOTALL)


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Parse the first JSON object found in text.

    Args:
        text: Raw completion text

    Returns:
        Parsed dict

    Raises:
        ValueError: If no JSON object can be parsed
    """
    if not text:
        raise ValueError("Empty completion text")

    candidates = []
    fence_match = _FENCE_PATTERN.search(text)
    if fence_match:
        candidates.append(fence_match.group(1))
    object_match = _OBJECT_PATTERN.search(text)
    if object_match:
        candidates.append(object_match.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            logger.debug(f"Candidate JSON rejected: {e}")
            continue
        if isinstance(data, dict):
            return data

    raise ValueError(f"No JSON object found in completion: {text[:100]!r}")
