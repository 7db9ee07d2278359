"""In-place rewriting of key=value properties files.

The transformer understands the properties file syntax (comments, blank
lines, '=', ':' or whitespace separators, backslash continuations) well
enough to change the value of selected keys while leaving every other
line untouched, including its line ending.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

COMMENT_MARKERS = ("#", "!")
KEY_TERMINATORS = "=: \t\f"
SEPARATORS = "=:"
WHITESPACE = " \t\f"

_UNESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


@dataclass
class _Entry:
    """A logical line: one or more physical lines joined by continuations."""

    lines: List[str]
    key: Optional[str] = None
    value_start: int = 0
    needs_separator: bool = False


class PropertiesTransformer:
    """Replace values of selected keys in a properties file.

    Keys present in ``replacements`` but absent from the file are not
    added. Running the transformer twice with the same map leaves the
    file as it was after the first run.

    Attributes:
        path: Properties file to rewrite.
        replacements: New value for each key to change.
    """

    def __init__(self, path: Path, replacements: Mapping[str, str]):
        self.path = Path(path)
        self.replacements = dict(replacements)

    def transform(self) -> bool:
        """Rewrite the file.

        Returns:
            True when the file was written, False if it does not exist.

        Raises:
            OSError: If the file cannot be read or written.
        """
        if not self.path.is_file():
            logger.warning(
                "Properties file not found",
                extra={"path": str(self.path)},
            )
            return False

        with open(self.path, encoding="utf-8", newline="") as f:
            original = f.read()

        transformed, changed_keys = self.transform_text(original)

        with open(self.path, "w", encoding="utf-8", newline="") as f:
            f.write(transformed)

        logger.info(
            "Properties file transformed",
            extra={"path": str(self.path), "changed_keys": sorted(changed_keys)},
        )
        return True

    def transform_text(self, text: str) -> Tuple[str, List[str]]:
        """Apply the replacements to properties file content.

        Returns:
            The new content and the keys whose values were rewritten.
        """
        output: List[str] = []
        changed: List[str] = []
        for entry in _parse_entries(text):
            if entry.key is None or entry.key not in self.replacements:
                output.extend(entry.lines)
                continue
            first = entry.lines[0]
            body, eol = _split_eol(first)
            prefix = body[: entry.value_start]
            if entry.needs_separator:
                prefix += "="
            output.append(prefix + escape_value(self.replacements[entry.key]) + eol)
            changed.append(entry.key)
        return "".join(output), changed


def _parse_entries(text: str) -> List[_Entry]:
    entries: List[_Entry] = []
    physical = text.splitlines(keepends=True)
    index = 0
    while index < len(physical):
        line = physical[index]
        body, _ = _split_eol(line)
        stripped = body.lstrip(WHITESPACE)
        if not stripped or stripped.startswith(COMMENT_MARKERS):
            entries.append(_Entry(lines=[line]))
            index += 1
            continue

        lines = [line]
        while _is_continued(_split_eol(lines[-1])[0]) and index + 1 < len(physical):
            index += 1
            lines.append(physical[index])
        index += 1

        key, value_start, needs_separator = _parse_key(body)
        entries.append(
            _Entry(
                lines=lines,
                key=key,
                value_start=value_start,
                needs_separator=needs_separator,
            )
        )
    return entries


def _parse_key(body: str) -> Tuple[str, int, bool]:
    """Locate the key and the start of the value on a logical line's first line."""
    position = len(body) - len(body.lstrip(WHITESPACE))
    key_start = position
    while position < len(body):
        char = body[position]
        if char == "\\":
            position += 2
            continue
        if char in KEY_TERMINATORS:
            break
        position += 1
    position = min(position, len(body))
    key_end = position

    while position < len(body) and body[position] in WHITESPACE:
        position += 1
    if position < len(body) and body[position] in SEPARATORS:
        position += 1
        while position < len(body) and body[position] in WHITESPACE:
            position += 1

    key = unescape(body[key_start:key_end])
    return key, position, position == key_end


def _split_eol(line: str) -> Tuple[str, str]:
    if line.endswith("\r\n"):
        return line[:-2], "\r\n"
    if line.endswith(("\n", "\r")):
        return line[:-1], line[-1]
    return line, ""


def _is_continued(body: str) -> bool:
    trailing = len(body) - len(body.rstrip("\\"))
    return trailing % 2 == 1


def unescape(text: str) -> str:
    """Resolve backslash escapes in a key."""
    result = []
    position = 0
    while position < len(text):
        char = text[position]
        if char != "\\" or position + 1 >= len(text):
            result.append(char)
            position += 1
            continue
        escaped = text[position + 1]
        if escaped == "u" and position + 6 <= len(text):
            try:
                result.append(chr(int(text[position + 2 : position + 6], 16)))
                position += 6
                continue
            except ValueError:
                pass
        result.append(_UNESCAPES.get(escaped, escaped))
        position += 2
    return "".join(result)


def escape_value(value: str) -> str:
    """Escape a value so it reads back unchanged."""
    escaped = value.replace("\\", "\\\\")
    escaped = escaped.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
    if escaped.startswith(" "):
        escaped = "\\" + escaped
    return escaped
