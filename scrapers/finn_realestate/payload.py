"""Extraction and decoding of the page-state payload embedded in finn.no HTML.

finn.no pages carry their server-side state inside a script tag. Two
encodings have been in use:

* ``RemixContextEncoding``: a JSON object literal assigned to
  ``window.__remixContext``.
* ``ReferenceStreamEncoding``: a JSON string passed to
  ``streamController.enqueue(...)``. The string holds a flat array in which
  objects and arrays point at other entries by index.

Both decode to the same plain tree of dicts and lists.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Type

from scrapers.common.exceptions import PayloadDecodeError


logger = logging.getLogger(__name__)

MAX_RESOLVE_DEPTH = 15


class RemixContextEncoding:
    """Nested JSON object assigned to a global variable."""

    name = 'remix-context'
    marker = 'window.__remixContext'
    pattern = re.compile(r'window\.__remixContext\s*=\s*({.*?});\s*</script>', re.DOTALL)

    @classmethod
    def detect(cls, html: str) -> bool:
        return cls.marker in html

    @classmethod
    def decode(cls, html: str) -> Any:
        match = cls.pattern.search(html)
        if not match:
            raise PayloadDecodeError("Could not find __remixContext data")
        try:
            return json.loads(match.group(1))
        except ValueError as e:
            raise PayloadDecodeError(f"Failed to parse __remixContext JSON: {e}")


class ReferenceStreamEncoding:
    """Escaped JSON string holding an indexed-reference array."""

    name = 'reference-stream'
    marker = 'streamController.enqueue('

    @classmethod
    def detect(cls, html: str) -> bool:
        return cls.marker in html

    @classmethod
    def decode(cls, html: str) -> Any:
        literal = extract_string_literal(html, html.find(cls.marker) + len(cls.marker))
        try:
            payload = json.loads(literal)
            values = json.loads(payload)
        except (TypeError, ValueError) as e:
            raise PayloadDecodeError(f"Failed to parse stream payload: {e}")
        if not isinstance(values, list) or not values:
            raise PayloadDecodeError("Stream payload is not a non-empty array")
        return ReferenceGraphResolver(values).resolve()


# Checked in order; the first encoding whose marker is present wins.
ENCODINGS: Tuple[Type, ...] = (RemixContextEncoding, ReferenceStreamEncoding)


def extract_string_literal(text: str, start: int) -> str:
    """
    Capture the first double-quoted string literal at or after ``start``.

    Backslash escapes are honored, so escaped quotes inside the literal do
    not end it.

    Args:
        text: Source text
        start: Offset to begin searching for the opening quote

    Returns:
        The literal including its surrounding quotes

    Raises:
        PayloadDecodeError: If no complete literal is found
    """
    if start < 0:
        raise PayloadDecodeError("Stream payload call not found")

    opening = text.find('"', start)
    if opening == -1:
        raise PayloadDecodeError("Stream payload has no string argument")

    position = opening + 1
    length = len(text)
    while position < length:
        char = text[position]
        if char == '\\':
            position += 2
            continue
        if char == '"':
            return text[opening:position + 1]
        position += 1

    raise PayloadDecodeError("Unterminated string literal in stream payload")


class ReferenceGraphResolver:
    """Turns an indexed-reference array back into a nested tree.

    Entry ``values[i]`` is either a literal, a list of references or an
    object ``{"_<k>": ref}`` whose property name is ``values[k]``. Integer
    references point at other entries; negative ones stand for null or
    undefined. Any other reference value is a literal.
    """

    def __init__(self, values: List[Any], max_depth: int = MAX_RESOLVE_DEPTH):
        self.values = values
        self.max_depth = max_depth

    def resolve(self, index: int = 0, depth: int = 0) -> Any:
        """
        Resolve the entry at ``index``.

        Raises:
            PayloadDecodeError: On a dangling index, a malformed key, or
                nesting deeper than ``max_depth`` (e.g. cyclic references)
        """
        if depth > self.max_depth:
            raise PayloadDecodeError(f"Reference graph nested deeper than {self.max_depth}")
        if index >= len(self.values):
            raise PayloadDecodeError(f"Reference {index} out of range ({len(self.values)} values)")

        entry = self.values[index]
        if isinstance(entry, dict):
            return self._resolve_object(entry, depth)
        if isinstance(entry, list):
            return [self.resolve_ref(ref, depth) for ref in entry]
        return entry

    def resolve_ref(self, ref: Any, depth: int) -> Any:
        if isinstance(ref, bool) or not isinstance(ref, int):
            return ref
        if ref < 0:
            return None
        return self.resolve(ref, depth + 1)

    def _resolve_object(self, entry: Dict[str, Any], depth: int) -> Dict[str, Any]:
        resolved = {}
        for key, ref in entry.items():
            resolved[self._key_name(key)] = self.resolve_ref(ref, depth)
        return resolved

    def _key_name(self, key: str) -> str:
        if not key.startswith('_') or not key[1:].isdigit():
            raise PayloadDecodeError(f"Malformed object key in stream payload: {key!r}")
        key_index = int(key[1:])
        if key_index >= len(self.values) or not isinstance(self.values[key_index], str):
            raise PayloadDecodeError(f"Object key {key!r} does not point at a property name")
        return self.values[key_index]


def detect_encoding(html: str) -> Optional[Type]:
    """Return the encoding class whose marker appears in the page, if any."""
    for encoding in ENCODINGS:
        if encoding.detect(html):
            return encoding
    return None


def decode_page(html: str) -> Any:
    """
    Decode the embedded page state of a finn.no page.

    Args:
        html: Raw HTML document

    Returns:
        Decoded tree of dicts, lists and literals

    Raises:
        PayloadDecodeError: If no known encoding is present or decoding fails
    """
    encoding = detect_encoding(html)
    if encoding is None:
        raise PayloadDecodeError("No embedded page state found")

    logger.debug(f"Decoding page state as {encoding.name}")
    return encoding.decode(html)
