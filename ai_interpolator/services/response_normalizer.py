"""
Response normalization.

Generation backends are asked for a JSON array of ``{"value": ...}``
objects but regularly answer with prose around it, one object per line,
the wrong key name or nested lists. ResponseNormalizer turns any of those
into an ordered list of candidate values and never raises.
"""

import json
import re
from typing import Any, List, Optional

from ai_interpolator.utils.logger import get_logger

logger = get_logger(__name__)


JSON_PATTERN = re.compile(r"[\[\{].*[\}\]]", re.DOTALL)
SCALAR_TYPES = (str, int, float, bool)

_decoder = json.JSONDecoder()


class ResponseNormalizer:
    """
    Best-effort parser for raw backend text.

    Rules, first match wins:
    1. cut everything outside the first ``[``/``{`` and the last ``]``/``}``
    2. parse as JSON; failing that, parse line by line and concatenate
    3. list of objects with ``value`` -> those values
    4. list of objects without ``value`` -> each object's first value
    5. list of lists -> flattened scalars
    6. object with ``value`` -> one value
    7. anything else -> the raw text as the single value
    """

    def normalize(self, raw: Optional[str]) -> List[Any]:
        """
        Convert raw backend text into candidate values.

        Args:
            raw: Text returned by the generation client

        Returns:
            Ordered candidate values. Empty for blank input or an empty
            JSON list.
        """
        if raw is None:
            return []
        text = raw if isinstance(raw, str) else str(raw)
        if not text.strip():
            return []

        parsed = self.extract_json(text)
        if parsed is not None:
            values = self._values_from(parsed)
            if values is not None:
                return values

        logger.debug("Response is not structured, using raw text", length=len(text))
        return [text]

    def extract_json(self, raw: Optional[str]) -> Any:
        """
        Extract and parse the JSON part of a response.

        Returns:
            The parsed structure, or None when nothing parses.
        """
        if not raw:
            return None
        match = JSON_PATTERN.search(raw)
        candidate = match.group(0) if match else raw

        try:
            return json.loads(candidate)
        except ValueError:
            pass

        fragments = self._parse_lines(candidate)
        if fragments is not None:
            return fragments

        # A single valid document followed by trailing prose on the same line
        if match:
            try:
                parsed, _ = _decoder.raw_decode(candidate)
                return parsed
            except ValueError:
                pass
        return None

    def _parse_lines(self, candidate: str) -> Optional[List[Any]]:
        fragments: List[Any] = []
        found = False
        for line in candidate.split("\n"):
            line = line.strip().rstrip(",")
            if not line:
                continue
            try:
                part = json.loads(line)
            except ValueError:
                continue
            if isinstance(part, list):
                fragments.extend(part)
                found = True
            elif isinstance(part, dict):
                fragments.append(part)
                found = True
        return fragments if found else None

    def _values_from(self, parsed: Any) -> Optional[List[Any]]:
        """Apply the shape rules; None means "use the raw text"."""
        if isinstance(parsed, dict):
            if "value" in parsed:
                return [parsed["value"]]
            return None

        if not isinstance(parsed, list):
            return None
        if not parsed:
            return []

        first = parsed[0]
        if isinstance(first, dict) and "value" in first:
            return [
                item["value"]
                for item in parsed
                if isinstance(item, dict) and item.get("value") is not None
            ]

        if isinstance(first, dict):
            values = []
            for item in parsed:
                if isinstance(item, dict) and item:
                    value = next(iter(item.values()))
                    if value is not None:
                        values.append(value)
            return values

        if isinstance(first, list):
            return [
                value
                for inner in parsed
                if isinstance(inner, list)
                for value in inner
                if isinstance(value, SCALAR_TYPES)
            ]

        return None


default_normalizer = ResponseNormalizer()


def normalize_response(raw: Optional[str]) -> List[Any]:
    """Normalize with the shared default normalizer."""
    return default_normalizer.normalize(raw)
