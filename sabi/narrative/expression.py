""" Embedded-text expressions: literal fragments plus {variable} references. """
from __future__ import annotations
import logging
import re
from typing import Callable, List, Mapping, Optional, Tuple, NoReturn

from sabi.narrative.errors import ScriptSyntaxError, ResolutionWarning
from sabi.narrative.types import Expression, Literal, VariableRef, Segment

logger = logging.getLogger(__name__)

VARIABLE_RE = re.compile(r"[^\W\d]\w*")

_ESCAPES = {'"': '"', "\\": "\\", "{": "{", "}": "}", "n": "\n"}
_UNESCAPES = {'"': '\\"', "\\": "\\\\", "{": "\\{", "}": "\\}", "\n": "\\n"}


def _scan(text: str, start: int, closing: Optional[str], fail: Callable[[str, int, str], NoReturn]) -> Tuple[Tuple[Segment, ...], int]:
    """
    Scan text from `start` until `closing` (or end of text when None).
    Returns (segments, index just past the closing char).
    """
    segments: List[Segment] = []
    buf: List[str] = []

    def flush() -> None:
        if buf:
            segments.append(Literal("".join(buf)))
            buf.clear()

    i, n = start, len(text)
    while i < n:
        c = text[i]
        if closing is not None and c == closing:
            flush()
            return tuple(segments), i + 1
        if c == "\\":
            esc = text[i + 1] if i + 1 < n else ""
            if esc not in _ESCAPES:
                fail("unknown escape sequence", i, text[i:i + 2])
            buf.append(_ESCAPES[esc])
            i += 2
            continue
        if c == "{":
            close = text.find("}", i + 1)
            if close < 0:
                fail("unterminated variable reference", i, text[i:])
            name = text[i + 1:close].strip()
            if not VARIABLE_RE.fullmatch(name):
                fail("bad variable name", i, text[i:close + 1])
            flush()
            segments.append(VariableRef(name))
            i = close + 1
            continue
        if c == "}":
            fail("unmatched '}'", i, c)
        buf.append(c)
        i += 1

    if closing is not None:
        fail("unterminated quoted text", start - 1, text[start - 1:])
    flush()
    return tuple(segments), n


def read_quoted(text: str,
                start: int,
                *,
                source: Optional[str] = None,
                line: int = 1,
                line_offset: int = 0) -> Tuple[Expression, int]:
    """
    Read a double-quoted expression beginning at text[start].
    Returns (expression, index just past the closing quote).
    Errors are located relative to `line`/`line_offset` of the enclosing script.
    """
    def fail(message: str, at: int, token: str) -> NoReturn:
        raise ScriptSyntaxError(
            message,
            source=source,
            line=line,
            column=at + 1,
            offset=line_offset + len(text[:at].encode("utf-8")),
            token=token,
        )

    if start >= len(text) or text[start] != '"':
        fail("expected quoted text", start, text[start:start + 1])
    segments, end = _scan(text, start + 1, '"', fail)
    return Expression(segments), end


def parse_expression(text: str) -> Expression:
    """ Build an Expression from unquoted text, e.g. "Hello {playername}". """
    def fail(message: str, at: int, token: str) -> NoReturn:
        raise ScriptSyntaxError(message, column=at + 1, offset=len(text[:at].encode("utf-8")), token=token)

    segments, _ = _scan(text, 0, None, fail)
    return Expression(segments)


def to_source(expression: Expression) -> str:
    """ Inverse of read_quoted: the quoted, escaped form of an expression. """
    out = ['"']
    for seg in expression.segments:
        if isinstance(seg, VariableRef):
            out.append("{" + seg.name + "}")
        else:
            out.append("".join(_UNESCAPES.get(c, c) for c in seg.text))
    out.append('"')
    return "".join(out)


def evaluate(expression: Expression,
             variables: Mapping[str, str],
             on_missing: Optional[Callable[[ResolutionWarning], None]] = None) -> str:
    """
    Concatenate segments left to right. Never raises: an undefined variable
    contributes "" and is reported through `on_missing` (and the log).
    """
    parts: List[str] = []
    for seg in expression.segments:
        if isinstance(seg, Literal):
            parts.append(seg.text)
            continue
        value = variables.get(seg.name)
        if value is None:
            warning = ResolutionWarning(f"variable '{seg.name}' is not defined")
            logger.warning("%s", warning)
            if on_missing is not None:
                on_missing(warning)
            continue
        parts.append(str(value))
    return "".join(parts)
