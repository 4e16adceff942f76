"""
Shell literal parsing.

Arguments are parsed as strict JSON first. When that fails they go through a
small recursive-descent parser that understands the literal subset of the
mongo shell: unquoted keys, single-quoted strings, trailing commas, regex
literals and a fixed set of constructors (Date, ISODate, ObjectId,
NumberInt, NumberLong, NumberDecimal, Decimal128, UUID, Timestamp).
Nothing is ever evaluated as code.
"""
import json
import re
import uuid
from datetime import datetime, timedelta, timezone

from bson import Binary, Decimal128, Int64, ObjectId, Timestamp
from bson.errors import InvalidId
from bson.regex import Regex

from .errors import LiteralParseError

_IDENT_RE = re.compile(r"[A-Za-z_$][\w$]*")
_NUMBER_RE = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_HEX_RE = re.compile(r"0[xX][0-9a-fA-F]+")
_REGEX_FLAGS = set("gimsux")
_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "b": "\b",
    "f": "\f", "v": "\v", "0": "\0",
}
_KEYWORDS = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
    "Infinity": float("inf"),
    "NaN": float("nan"),
}
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# month is zero-based, day one-based
_DATE_DEFAULTS = [0, 0, 1, 0, 0, 0, 0]


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _make_date(*args):
    if not args:
        return datetime.now(timezone.utc)
    if len(args) == 1:
        value = args[0]
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        if _is_number(value):
            return _EPOCH + timedelta(milliseconds=value)
        raise TypeError(f"unsupported argument {value!r}")
    if len(args) > 7 or not all(_is_number(arg) for arg in args):
        raise TypeError("expected 2 to 7 numeric arguments")
    parts = [int(arg) for arg in args] + _DATE_DEFAULTS[len(args):]
    year, month, day, hour, minute, second, millis = parts
    # out-of-range parts roll over into the neighbouring unit
    first = datetime(year + month // 12, month % 12 + 1, 1, tzinfo=timezone.utc)
    return first + timedelta(days=day - 1, hours=hour, minutes=minute,
                             seconds=second, milliseconds=millis)


def _make_object_id(*args):
    if not args:
        return ObjectId()
    if len(args) == 1 and isinstance(args[0], str):
        return ObjectId(args[0])
    raise TypeError("expected no argument or a 24-character hex string")


def _make_int(value=0):
    if isinstance(value, str):
        return int(value.strip())
    if _is_number(value):
        return int(value)
    raise TypeError(f"unsupported argument {value!r}")


def _make_long(value=0):
    return Int64(_make_int(value))


def _make_decimal(value="0"):
    if isinstance(value, str) or _is_number(value):
        return Decimal128(str(value))
    raise TypeError(f"unsupported argument {value!r}")


def _make_uuid(*args):
    value = uuid.UUID(args[0]) if args else uuid.uuid4()
    return Binary.from_uuid(value)


def _make_timestamp(time=0, inc=0):
    return Timestamp(int(time), int(inc))


CONSTRUCTORS = {
    "Date": _make_date,
    "ISODate": _make_date,
    "ObjectId": _make_object_id,
    "NumberInt": _make_int,
    "NumberLong": _make_long,
    "NumberDecimal": _make_decimal,
    "Decimal128": _make_decimal,
    "UUID": _make_uuid,
    "Timestamp": _make_timestamp,
}


class _LiteralParser:
    def __init__(self, source: str):
        self.source = source
        self.pos = 0

    def parse(self):
        value = self.parse_value()
        self._skip_ws()
        if self.pos < len(self.source):
            self._fail(f"Unexpected trailing input {self.source[self.pos:self.pos + 20]!r}")
        return value

    # -- helpers --

    def _fail(self, message, position=None):
        raise LiteralParseError(message, self.pos if position is None else position)

    def _peek(self) -> str:
        return self.source[self.pos] if self.pos < len(self.source) else ""

    def _skip_ws(self):
        src = self.source
        while self.pos < len(src):
            ch = src[self.pos]
            if ch.isspace():
                self.pos += 1
            elif src.startswith("//", self.pos):
                end = src.find("\n", self.pos)
                self.pos = len(src) if end == -1 else end + 1
            elif src.startswith("/*", self.pos):
                end = src.find("*/", self.pos + 2)
                if end == -1:
                    self._fail("Unterminated comment")
                self.pos = end + 2
            else:
                break

    def _expect(self, ch):
        self._skip_ws()
        if self._peek() != ch:
            found = repr(self._peek()) if self._peek() else "end of input"
            self._fail(f"Expected '{ch}' but found {found}")
        self.pos += 1

    def _identifier(self) -> str:
        m = _IDENT_RE.match(self.source, self.pos)
        if not m:
            self._fail("Expected an identifier")
        self.pos = m.end()
        return m.group(0)

    # -- grammar --

    def parse_value(self):
        self._skip_ws()
        ch = self._peek()
        if not ch:
            self._fail("Unexpected end of input")
        if ch == "{":
            return self._object()
        if ch == "[":
            return self._array()
        if ch in ("'", '"'):
            return self._string()
        if ch == "/":
            return self._regex()
        if ch in "+-." or ch.isdigit():
            return self._number()
        if _IDENT_RE.match(ch):
            start = self.pos
            word = self._identifier()
            if word in _KEYWORDS:
                return _KEYWORDS[word]
            if word == "new":
                self._skip_ws()
                word = self._identifier()
            return self._constructor(word, start)
        self._fail(f"Unexpected character {ch!r}")

    def _object(self):
        self.pos += 1
        result = {}
        self._skip_ws()
        if self._peek() == "}":
            self.pos += 1
            return result
        while True:
            self._skip_ws()
            ch = self._peek()
            if ch in ("'", '"'):
                key = self._string()
            elif ch.isdigit():
                key = str(self._number())
            elif ch and _IDENT_RE.match(ch):
                key = self._identifier()
            else:
                self._fail("Expected a property name")
            self._expect(":")
            result[key] = self.parse_value()
            self._skip_ws()
            if self._peek() == ",":
                self.pos += 1
                self._skip_ws()
                if self._peek() == "}":
                    self.pos += 1
                    return result
                continue
            self._expect("}")
            return result

    def _array(self):
        self.pos += 1
        result = []
        self._skip_ws()
        if self._peek() == "]":
            self.pos += 1
            return result
        while True:
            result.append(self.parse_value())
            self._skip_ws()
            if self._peek() == ",":
                self.pos += 1
                self._skip_ws()
                if self._peek() == "]":
                    self.pos += 1
                    return result
                continue
            self._expect("]")
            return result

    def _string(self) -> str:
        start = self.pos
        quote = self.source[self.pos]
        self.pos += 1
        chars = []
        src = self.source
        while self.pos < len(src):
            ch = src[self.pos]
            if ch == quote:
                self.pos += 1
                return "".join(chars)
            if ch == "\\":
                self.pos += 1
                esc = src[self.pos:self.pos + 1]
                if esc in ("u", "x"):
                    width = 4 if esc == "u" else 2
                    digits = src[self.pos + 1:self.pos + 1 + width]
                    if len(digits) != width or not all(c in "0123456789abcdefABCDEF" for c in digits):
                        self._fail(f"Invalid \\{esc} escape")
                    chars.append(chr(int(digits, 16)))
                    self.pos += 1 + width
                    continue
                if esc == "\n":
                    self.pos += 1
                    continue
                chars.append(_ESCAPES.get(esc, esc))
                self.pos += 1
                continue
            chars.append(ch)
            self.pos += 1
        self._fail("Unterminated string", start)

    def _number(self):
        start = self.pos
        sign = 1
        if self._peek() in "+-":
            sign = -1 if self._peek() == "-" else 1
            self.pos += 1
            self._skip_ws()
        m = _IDENT_RE.match(self.source, self.pos)
        if m and m.group(0) in ("Infinity", "NaN"):
            self.pos = m.end()
            return sign * _KEYWORDS[m.group(0)]
        m = _HEX_RE.match(self.source, self.pos)
        if m:
            self.pos = m.end()
            return sign * int(m.group(0), 16)
        m = _NUMBER_RE.match(self.source, self.pos)
        if not m:
            self._fail("Invalid number", start)
        self.pos = m.end()
        text = m.group(0)
        if any(c in text for c in ".eE"):
            return sign * float(text)
        return sign * int(text)

    def _regex(self):
        start = self.pos
        src = self.source
        i = self.pos + 1
        in_class = False
        while i < len(src):
            ch = src[i]
            if ch == "\\":
                i += 2
                continue
            if ch == "[":
                in_class = True
            elif ch == "]":
                in_class = False
            elif ch == "/" and not in_class:
                break
            elif ch == "\n":
                i = len(src)
                break
            i += 1
        if i >= len(src) or i == start + 1:
            self._fail("Unterminated regular expression", start)
        pattern = src[start + 1:i]
        i += 1
        flags_start = i
        while i < len(src) and src[i].isalpha():
            i += 1
        flags = src[flags_start:i]
        if not set(flags) <= _REGEX_FLAGS:
            self._fail(f"Invalid regular expression flags {flags!r}", flags_start)
        self.pos = i
        return Regex(pattern, "".join(sorted(set(flags) - {"g"})))

    def _constructor(self, name, start):
        factory = CONSTRUCTORS.get(name)
        if factory is None:
            self._fail(f"Unsupported expression '{name}'", start)
        self._expect("(")
        args = []
        self._skip_ws()
        if self._peek() == ")":
            self.pos += 1
        else:
            while True:
                args.append(self.parse_value())
                self._skip_ws()
                if self._peek() == ",":
                    self.pos += 1
                    continue
                self._expect(")")
                break
        try:
            return factory(*args)
        except (TypeError, ValueError, OverflowError, InvalidId) as e:
            self._fail(f"Invalid {name}() call: {e}", start)


def parse_literal(source: str):
    """Parse a shell argument: strict JSON first, then the restricted literal grammar."""
    try:
        return json.loads(source)
    except ValueError:
        pass
    return _LiteralParser(source).parse()
