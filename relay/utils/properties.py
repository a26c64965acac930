"""
Parser for ``key=value`` property files.

Source files dropped into the watched directory and the relay configuration
files share the Java ``.properties`` conventions: ``#``/``!`` comments,
``=``, ``:`` or whitespace separators, backslash line continuations and
backslash escapes (including ``\\uXXXX``).
"""

import re
import string
from pathlib import Path
from typing import Dict, Iterator, Tuple, Union

from relay.utils.exceptions import FileParseError

_WHITESPACE = " \t\f"
_SEPARATORS = "=:"
_COMMENT_MARKERS = "#!"
_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def _continues(line: str) -> bool:
    """Return True when ``line`` ends with an odd number of backslashes."""
    trailing = len(line) - len(line.rstrip("\\"))
    return trailing % 2 == 1


def _logical_lines(text: str) -> Iterator[str]:
    """Join continuation lines and drop blanks and comments."""
    pending = None

    for raw in _LINE_BREAK.split(text):
        line = raw.lstrip(_WHITESPACE)

        if pending is None and (not line or line[0] in _COMMENT_MARKERS):
            continue

        if _continues(line):
            pending = (pending or "") + line[:-1]
            continue

        yield (pending or "") + line
        pending = None

    if pending is not None:
        yield pending


def _unescape(text: str) -> str:
    """Decode backslash escapes in a key or value."""
    if "\\" not in text:
        return text

    chars = []
    index = 0
    length = len(text)

    while index < length:
        char = text[index]
        if char != "\\":
            chars.append(char)
            index += 1
            continue

        index += 1
        if index >= length:
            break

        char = text[index]
        if char == "u":
            digits = text[index + 1:index + 5]
            if len(digits) != 4 or any(d not in string.hexdigits for d in digits):
                raise FileParseError(f"Malformed \\uxxxx encoding in {text!r}")
            chars.append(chr(int(digits, 16)))
            index += 5
            continue

        chars.append(_ESCAPES.get(char, char))
        index += 1

    decoded = "".join(chars)
    try:
        # Recombine surrogate pairs written as two \u escapes
        return decoded.encode("utf-16", "surrogatepass").decode("utf-16")
    except UnicodeDecodeError as e:
        raise FileParseError(f"Unpaired surrogate escape in {text!r}") from e


def _split_entry(line: str) -> Tuple[str, str]:
    """Split a logical line into its raw key and value."""
    index = 0
    length = len(line)

    while index < length:
        char = line[index]
        if char == "\\":
            index += 2
            continue
        if char in _SEPARATORS or char in _WHITESPACE:
            break
        index += 1

    key = line[:index]
    value = line[index:].lstrip(_WHITESPACE)
    if value and value[0] in _SEPARATORS:
        value = value[1:].lstrip(_WHITESPACE)

    return _unescape(key), _unescape(value)


def parse_properties(text: str) -> Dict[str, str]:
    """
    Parse properties text into a key/value mapping.

    Args:
        text: Contents of a ``.properties`` style file

    Returns:
        Mapping of keys to values; a repeated key keeps its last value

    Raises:
        FileParseError: If an escape sequence is malformed
    """
    properties: Dict[str, str] = {}

    for line in _logical_lines(text):
        key, value = _split_entry(line)
        properties[key] = value

    return properties


def load_properties(path: Union[str, Path]) -> Dict[str, str]:
    """
    Read and parse a properties file.

    Args:
        path: File to read (UTF-8)

    Returns:
        Parsed key/value mapping

    Raises:
        FileParseError: If the file cannot be read, decoded or parsed
    """
    path = Path(path)

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FileParseError(f"Cannot read {path}: {e}") from e

    return parse_properties(text)
