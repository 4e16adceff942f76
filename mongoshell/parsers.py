import re
from typing import Iterator, List, NamedTuple, Optional, Tuple

from .errors import LiteralParseError, ShellSyntaxError, UnsupportedCommandError
from .literals import parse_literal

_OPENERS = "([{"
_CLOSERS = ")]}"
# a "/" after one of these (or at the very start) opens a regex literal
_REGEX_PRECEDERS = "([{,:"

_IDENT = r"[A-Za-z_$][\w$]*"
_SHOW_RE = re.compile(r"^show\s+(collections|tables)$", re.IGNORECASE)
_DB_ITEM_RE = re.compile(r"""^db\s*\[\s*(['"])(.+?)\1\s*\]""")
_DB_ATTR_RE = re.compile(rf"^db\s*\.\s*({_IDENT})\s*")
_BARE_CALL_RE = re.compile(rf"^\.?\s*({_IDENT})\s*(?=\()")
_METHOD_RE = re.compile(rf"\s*\.\s*({_IDENT})\s*(?=\()")


class Balanced(NamedTuple):
    content: str
    end_index: int


class CursorMethod(NamedTuple):
    name: str
    arguments: str


class ShellCommand(NamedTuple):
    operation: str
    collection: Optional[str]
    arguments: str
    chain: List[CursorMethod]


def _skip_string(text: str, start: int) -> int:
    """Return the index just past the string literal opened at start."""
    quote = text[start]
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        i += 1
    return len(text)


def _skip_regex(text: str, start: int) -> Optional[int]:
    """Return the index just past the /regex/flags opened at start, or None if it is not one."""
    i = start + 1
    in_class = False
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "\n":
            return None
        if ch == "[":
            in_class = True
        elif ch == "]":
            in_class = False
        elif ch == "/" and not in_class:
            if i == start + 1:
                return None
            i += 1
            while i < len(text) and text[i].isalpha():
                i += 1
            return i
        i += 1
    return None


def _skip_comment(text: str, start: int) -> Optional[int]:
    """Return the index just past the // or /* */ comment opened at start, or None if there is none."""
    if text.startswith("//", start):
        end = text.find("\n", start)
        return len(text) if end == -1 else end
    if text.startswith("/*", start):
        end = text.find("*/", start + 2)
        return len(text) if end == -1 else end + 2
    return None


def iter_code(text: str, start: int = 0) -> Iterator[Tuple[int, str]]:
    """Yield (index, char) for every character outside string and regex literals and comments."""
    i = start
    last = ""
    while i < len(text):
        ch = text[i]
        if ch in ('"', "'"):
            i = _skip_string(text, i)
            last = ch
            continue
        if ch == "/":
            end = _skip_comment(text, i)
            if end is not None:
                i = end
                continue
        if ch == "/" and (not last or last in _REGEX_PRECEDERS):
            end = _skip_regex(text, i)
            if end is not None:
                i = end
                last = "/"
                continue
        yield i, ch
        if not ch.isspace():
            last = ch
        i += 1


def extract_balanced(text: str, open_index: int) -> Optional[Balanced]:
    """Return the content between the '(' at open_index and its matching ')'.

    Returns None when open_index does not hold '(' or the parentheses never
    balance. Parentheses inside string and regex literals and comments
    are not counted.
    """
    if open_index < 0 or open_index >= len(text) or text[open_index] != "(":
        return None
    depth = 0
    for i, ch in iter_code(text, open_index):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return Balanced(text[open_index + 1:i], i + 1)
    return None


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split on separator only where (), {} and [] are all balanced and outside literals."""
    parts = []
    depth = 0
    begin = 0
    for i, ch in iter_code(text):
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
        elif ch == separator and depth == 0:
            parts.append(text[begin:i].strip())
            begin = i + 1
    tail = text[begin:].strip()
    if tail:
        parts.append(tail)
    return parts


def split_statements(src: str) -> List[str]:
    """Split shell input into statements on top-level semicolons."""
    return [statement for statement in split_top_level(src, ";") if statement]


def _skip_blank(text: str, pos: int) -> int:
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        end = _skip_comment(text, pos)
        if end is None:
            break
        pos = end
    return pos


def _call(text: str, open_index: int, name: str) -> Balanced:
    call = extract_balanced(text, open_index)
    if call is None:
        raise ShellSyntaxError(f"Invalid {name} syntax: unbalanced parentheses")
    return call


def _read_method(text: str, pos: int) -> Optional[Tuple[str, Balanced]]:
    m = _METHOD_RE.match(text, pos)
    if not m:
        return None
    name = m.group(1)
    return name, _call(text, m.end(), name)


def _collection_name(arguments: str) -> str:
    try:
        name = parse_literal(arguments.strip())
    except LiteralParseError as e:
        raise ShellSyntaxError(f"Invalid getCollection syntax: {e}") from e
    if not isinstance(name, str) or not name:
        raise ShellSyntaxError("getCollection requires a collection name string")
    return name


def parse_command(line: str) -> ShellCommand:
    """Parse one shell statement into a ShellCommand.

    Accepted forms:
      show collections
      db.<op>(...)                      database level, or the default collection
      db.<name>.<op>(...).<method>(...)
      db.getCollection("name").<op>(...)
      db["name"].<op>(...)
      <op>(...)                         the default collection
    """
    line = line.strip()
    if not line:
        raise ShellSyntaxError("Empty command")

    if _SHOW_RE.match(line):
        return ShellCommand("getCollectionNames", None, "", [])

    collection = None
    m = _DB_ITEM_RE.match(line)
    if m:
        collection = m.group(2)
        method = _read_method(line, m.end())
    else:
        m = _DB_ATTR_RE.match(line)
        if m and m.end() < len(line) and line[m.end()] == "(":
            name = m.group(1)
            call = _call(line, m.end(), name)
            if name == "getCollection":
                collection = _collection_name(call.content)
                method = _read_method(line, call.end_index)
            else:
                method = name, call
        elif m:
            collection = m.group(1)
            method = _read_method(line, m.end())
        else:
            m = _BARE_CALL_RE.match(line)
            method = (m.group(1), _call(line, m.end(), m.group(1))) if m else None

    if method is None:
        raise UnsupportedCommandError(f"Unrecognized command: {line}")

    operation, call = method
    chain = []
    pos = call.end_index
    while True:
        pos = _skip_blank(line, pos)
        if pos >= len(line):
            break
        following = _read_method(line, pos)
        if following is None:
            rest = line[pos:].strip()
            raise ShellSyntaxError(f"Invalid syntax: unexpected input after {operation}(): {rest}")
        name, cursor_call = following
        chain.append(CursorMethod(name, cursor_call.content))
        pos = cursor_call.end_index

    return ShellCommand(operation, collection, call.content, chain)
