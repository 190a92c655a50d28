"""
.sabi script grammar.

    SCENE <name>
        Nayu: "This is dialogue."
        Nayu: (happy) "Emotions can change inline, {playername}."
        MC: "The main character speaks with the player's name."
        info: "Narration has no speaker."
        {log "Logged to the history only."}
        (Nayu appears at far left looking right as happy)
        (Nayu moves to center)
        (Animation sparkle appears at 40 60 scale 2 layer 4)
        (Background changes to "forest")
        (GUI textbox changes to "plate_blue" sliced)
        (Scene "next_scene" begins)
    CURTAIN

One directive per line, indentation is ignored, `//` starts a comment line.
The verb vocabulary is closed: anything unrecognized is a ScriptSyntaxError.
"""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, NoReturn

from sabi.narrative.errors import ScriptSyntaxError, StructuralError
from sabi.narrative.expression import read_quoted, to_source
from sabi.narrative.types import (
    Script, Scene, Directive, Dialogue, StageDirection, Log, Expression, Literal,
    Speaker, SpeakerKind, MAIN_CHARACTER, NARRATOR, Target, TargetKind, ActionKind,
    Position, Facing, Fade, ScalingMode, GuiElement,
)

logger = logging.getLogger(__name__)

IDENT_RE = re.compile(r"[^\W\d]\w*")
NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?%?")
SCENE_RE = re.compile(r"SCENE\b")
SPEAKER_RE = re.compile(r"(?P<speaker>[^\W\d]\w*)\s*:")
LOG_RE = re.compile(r"\{\s*log\b\s*")

@dataclass(frozen=True)
class _Line:
    number: int         # 1-based
    text: str           # without line terminator
    offset: int         # byte offset of the line start

@dataclass(frozen=True)
class _Token:
    kind: str           # word | string | number
    value: Any
    col: int            # 0-based index into the line
    raw: str

class _Cursor:
    """ Token stream over one stage direction. """
    def __init__(self, parser: "_Parser", line: _Line, tokens: List[_Token]) -> None:
        self._p = parser
        self._line = line
        self._tokens = tokens
        self._i = 0

    def fail(self, message: str, tok: Optional[_Token] = None) -> NoReturn:
        if tok is None:
            tok = self._tokens[self._i] if self._i < len(self._tokens) else None
        col = tok.col if tok else len(self._line.text)
        self._p.fail(message, self._line, col, tok.raw if tok else "")

    def at_end(self) -> bool:
        return self._i >= len(self._tokens)

    def peek(self) -> Optional[_Token]:
        return None if self.at_end() else self._tokens[self._i]

    def next(self, what: str) -> _Token:
        if self.at_end():
            self.fail(f"expected {what}")
        tok = self._tokens[self._i]
        self._i += 1
        return tok

    def accept(self, *words: str) -> Optional[str]:
        tok = self.peek()
        if tok is not None and tok.kind == "word" and tok.value in words:
            self._i += 1
            return tok.value
        return None

    def expect(self, *words: str) -> str:
        tok = self.next(" or ".join(repr(w) for w in words))
        if tok.kind != "word" or tok.value not in words:
            self.fail(f"expected {' or '.join(repr(w) for w in words)}", tok)
        return tok.value

    def identifier(self, what: str) -> str:
        tok = self.next(what)
        if tok.kind != "word":
            self.fail(f"expected {what}", tok)
        return tok.value

    def name(self, what: str) -> str:
        """ A bare identifier or a quoted literal string. """
        tok = self.next(what)
        if tok.kind == "word":
            return tok.value
        if tok.kind == "string":
            if tok.value.variables():
                self.fail(f"{what} cannot contain variables", tok)
            return "".join(seg.text for seg in tok.value.segments if isinstance(seg, Literal))
        self.fail(f"expected {what}", tok)

    def number(self, what: str) -> float:
        tok = self.next(what)
        if tok.kind != "number":
            self.fail(f"expected {what}", tok)
        return tok.value

    def done(self) -> None:
        if not self.at_end():
            self.fail("unexpected token")

# --- Parser ----------------------------------------------------------------------

class _Parser:
    def __init__(self, text: str, source: Optional[str]) -> None:
        if text.startswith("\ufeff"):
            text = text[1:]
        self.text = text
        self.source = source

    def fail(self, message: str, line: _Line, col: int, token: str = "") -> NoReturn:
        raise ScriptSyntaxError(
            message,
            source=self.source,
            line=line.number,
            column=col + 1,
            offset=line.offset + len(line.text[:col].encode("utf-8")),
            token=token,
        )

    def _lines(self) -> List[_Line]:
        out: List[_Line] = []
        offset = 0
        # only \n (optionally \r\n) ends a line; other separators stay in the text
        raws = self.text.split("\n")
        if raws[-1] == "":
            raws.pop()
        for number, raw in enumerate(raws, 1):
            text = raw[:-1] if raw.endswith("\r") else raw
            out.append(_Line(number, text, offset))
            offset += len(raw.encode("utf-8")) + 1
        return out

    # ----- top level -------------------------------------------------------
    def parse(self) -> Script:
        scenes: Dict[str, Scene] = {}
        current: Optional[Tuple[str, _Line]] = None
        directives: List[Directive] = []
        last: Optional[_Line] = None

        for line in self._lines():
            last = line
            stripped = line.text.strip()
            if not stripped or stripped.startswith("//"):
                continue
            col = len(line.text) - len(line.text.lstrip())

            if SCENE_RE.match(stripped):
                if current is not None:
                    self.fail(f"scene '{current[0]}' is missing CURTAIN before a new SCENE", line, col, "SCENE")
                parts = stripped.split()
                if len(parts) != 2 or not IDENT_RE.fullmatch(parts[1]):
                    self.fail("expected 'SCENE <name>'", line, col, stripped)
                name = parts[1]
                if name in scenes:
                    raise StructuralError(f"duplicate scene '{name}'", source=self.source, line=line.number)
                current = (name, line)
                directives = []
                continue

            if current is None:
                self.fail("expected 'SCENE <name>'", line, col, stripped.split()[0])

            if stripped == "CURTAIN":
                name, start = current
                scenes[name] = Scene(name, tuple(directives), line=start.number)
                current = None
                continue

            directives.append(self._directive(line, col))

        if current is not None:
            name, start = current
            end = last or start
            self.fail(f"scene '{name}' is missing CURTAIN", end, len(end.text))
        if not scenes:
            raise ScriptSyntaxError("script contains no scenes", source=self.source, line=last.number if last else 1)
        return Script(scenes, name=self.source or "")

    def _directive(self, line: _Line, col: int) -> Directive:
        head = line.text[col]
        if head == "(":
            return self._stage_direction(line, col)
        if head == "{":
            return self._log(line, col)
        return self._dialogue(line, col)

    # ----- dialogue / log ----------------------------------------------------
    def _quoted(self, line: _Line, pos: int) -> Tuple[Expression, int]:
        return read_quoted(line.text, pos, source=self.source, line=line.number, line_offset=line.offset)

    def _skip_ws(self, text: str, pos: int) -> int:
        while pos < len(text) and text[pos].isspace():
            pos += 1
        return pos

    def _expect_eol(self, line: _Line, pos: int) -> None:
        pos = self._skip_ws(line.text, pos)
        if pos < len(line.text):
            self.fail("unexpected text after directive", line, pos, line.text[pos:].strip())

    def _dialogue(self, line: _Line, col: int) -> Dialogue:
        m = SPEAKER_RE.match(line.text, col)
        if not m:
            self.fail("unrecognized line, expected dialogue, stage direction or log", line, col,
                      line.text[col:].split()[0])
        name = m.group("speaker")
        if name == SpeakerKind.MAIN_CHARACTER.value:
            speaker = MAIN_CHARACTER
        elif name == SpeakerKind.NARRATOR.value:
            speaker = NARRATOR
        else:
            speaker = Speaker.character(name)

        pos = self._skip_ws(line.text, m.end())
        emotion: Optional[str] = None
        if pos < len(line.text) and line.text[pos] == "(":
            close = line.text.find(")", pos)
            if close < 0:
                self.fail("unterminated emotion", line, pos, line.text[pos:])
            emotion = line.text[pos + 1:close].strip()
            if not IDENT_RE.fullmatch(emotion):
                self.fail("bad emotion name", line, pos, line.text[pos:close + 1])
            pos = self._skip_ws(line.text, close + 1)

        text, end = self._quoted(line, pos)
        self._expect_eol(line, end)
        return Dialogue(speaker, text, emotion, line=line.number)

    def _log(self, line: _Line, col: int) -> Log:
        m = LOG_RE.match(line.text, col)
        if not m:
            self.fail("expected '{log \"...\"}'", line, col, line.text[col:].strip())
        message, end = self._quoted(line, m.end())
        end = self._skip_ws(line.text, end)
        if end >= len(line.text) or line.text[end] != "}":
            self.fail("expected '}' to close log", line, end, line.text[end:].strip())
        self._expect_eol(line, end + 1)
        return Log(message, line=line.number)

    # ----- stage directions -------------------------------------------------
    def _tokenize(self, line: _Line, start: int) -> Tuple[List[_Token], int]:
        """ Tokens from just after '(' up to the matching ')'. Returns (tokens, index after ')'). """
        text = line.text
        tokens: List[_Token] = []
        pos = start
        while True:
            pos = self._skip_ws(text, pos)
            if pos >= len(text):
                self.fail("unterminated stage direction, expected ')'", line, pos)
            c = text[pos]
            if c == ")":
                return tokens, pos + 1
            if c == '"':
                expr, end = self._quoted(line, pos)
                tokens.append(_Token("string", expr, pos, text[pos:end]))
                pos = end
                continue
            m = NUMBER_RE.match(text, pos)
            if m:
                raw = m.group(0)
                tokens.append(_Token("number", float(raw.rstrip("%")), pos, raw))
                pos = m.end()
                continue
            m = IDENT_RE.match(text, pos)
            if m:
                tokens.append(_Token("word", m.group(0), pos, m.group(0)))
                pos = m.end()
                continue
            self.fail("unexpected character in stage direction", line, pos, c)

    def _stage_direction(self, line: _Line, col: int) -> StageDirection:
        tokens, end = self._tokenize(line, col + 1)
        self._expect_eol(line, end)
        if not tokens:
            self.fail("empty stage direction", line, col, "()")
        cur = _Cursor(self, line, tokens)
        head = cur.next("a target")
        if head.kind != "word":
            cur.fail("expected a target", head)

        if head.value == "Scene":
            target, action, params = self._scene(cur)
        elif head.value == "Background":
            target, action, params = self._background(cur)
        elif head.value == "GUI":
            target, action, params = self._gui(cur)
        elif head.value == "Animation":
            target, action, params = self._animation(cur)
        else:
            target, action, params = self._actor(cur, head.value)
        cur.done()
        return StageDirection(target, action, params, line=line.number)

    def _scene(self, cur: _Cursor):
        name = cur.name("scene name")
        cur.expect("begins")
        return Target(TargetKind.SCENE), ActionKind.JUMP, {"name": name}

    def _background(self, cur: _Cursor):
        cur.expect("changes")
        cur.expect("to")
        return Target(TargetKind.BACKGROUND), ActionKind.CHANGE, {"id": cur.name("background id")}

    def _gui(self, cur: _Cursor):
        element = GuiElement(cur.expect(*(e.value for e in GuiElement)))
        cur.expect("changes")
        cur.expect("to")
        params: Dict[str, Any] = {"element": element, "id": cur.name("GUI sprite id")}
        mode = cur.accept(*(m.value for m in ScalingMode))
        if mode:
            params["scaling"] = ScalingMode(mode)
        return Target(TargetKind.GUI, element.value), ActionKind.CHANGE, params

    def _position(self, cur: _Cursor) -> Position:
        first = cur.expect("center", "left", "right", "far", "invisible")
        if first in ("far", "invisible"):
            side = cur.expect("left", "right")
            return Position(f"{first} {side}")
        return Position(first)

    def _facing(self, cur: _Cursor) -> Facing:
        return Facing(cur.expect("left", "right"))

    def _verb(self, cur: _Cursor, kind: str, *verbs: str) -> str:
        tok = cur.next("a verb")
        if tok.kind != "word" or tok.value not in verbs:
            cur.fail(f"unknown verb for {kind}", tok)
        return tok.value

    def _options(self, cur: _Cursor, handlers: Dict[str, Any]) -> Dict[str, Any]:
        """ Order-independent `keyword value` options, each allowed once. """
        params: Dict[str, Any] = {}
        seen = set()
        while not cur.at_end():
            tok = cur.peek()
            word = cur.accept(*handlers)
            if word is None:
                cur.fail("unexpected token")
            if word in seen:
                cur.fail(f"duplicate option '{word}'", tok)
            seen.add(word)
            key, value = handlers[word](cur)
            params[key] = value
        return params

    def _actor(self, cur: _Cursor, name: str):
        target = Target(TargetKind.ACTOR, name)
        options = {
            "at": lambda c: ("position", self._position(c)),
            "looking": lambda c: ("facing", self._facing(c)),
            "as": lambda c: ("emotion", c.identifier("emotion")),
        }
        verb = self._verb(cur, f"actor '{name}'", "appears", "disappears", "fades", "moves", "looks")
        if verb == "appears":
            return target, ActionKind.APPEAR, self._options(cur, options)
        if verb == "disappears":
            return target, ActionKind.DISAPPEAR, {}
        if verb == "fades":
            direction = Fade(cur.expect("in", "out"))
            params: Dict[str, Any] = {"direction": direction}
            if direction is Fade.IN:
                params.update(self._options(cur, options))
            return target, ActionKind.FADE, params
        if verb == "moves":
            cur.expect("to")
            return target, ActionKind.MOVE, {"position": self._position(cur)}
        return target, ActionKind.LOOK, {"facing": self._facing(cur)}

    def _coords(self, cur: _Cursor) -> Tuple[float, float]:
        return (cur.number("x position"), cur.number("y position"))

    def _scale(self, cur: _Cursor) -> Tuple[str, float]:
        tok = cur.peek()
        value = cur.number("scale")
        if value < 0:
            cur.fail("scale cannot be negative", tok)
        return "scale", value

    def _layer(self, cur: _Cursor) -> Tuple[str, int]:
        tok = cur.peek()
        value = cur.number("layer")
        if not float(value).is_integer():
            cur.fail("layer must be an integer", tok)
        return "layer", int(value)

    def _animation(self, cur: _Cursor):
        name = cur.identifier("animation name")
        target = Target(TargetKind.ANIMATED, name)
        verb = self._verb(cur, f"animation '{name}'", "appears", "fades", "moves", "looks")
        if verb == "appears":
            return target, ActionKind.APPEAR, self._options(cur, {
                "at": lambda c: ("position", self._coords(c)),
                "scale": self._scale,
                "layer": self._layer,
            })
        if verb == "fades":
            return target, ActionKind.FADE, {"direction": Fade(cur.expect("in", "out"))}
        if verb == "moves":
            cur.expect("to")
            return target, ActionKind.MOVE, {"position": self._coords(cur)}
        return target, ActionKind.LOOK, {"facing": self._facing(cur)}

# --- Validation ------------------------------------------------------------------

def validate(script: Script) -> Script:
    """ Eager structural checks: at least one scene, and every jump must land on a scene of the same script. """
    if not script.scenes:
        raise StructuralError("script contains no scenes", source=script.name or None)
    for scene in script.scenes.values():
        for directive in scene.directives:
            if isinstance(directive, StageDirection) and directive.is_jump:
                target = directive.params["name"]
                if target not in script.scenes:
                    raise StructuralError(
                        f"scene '{scene.name}' jumps to unknown scene '{target}'",
                        source=script.name or None,
                        line=directive.line,
                    )
    return script

def loads(text: str, name: Optional[str] = None) -> Script:
    """
    Parse and validate .sabi text. Either the whole Script comes back or
    ScriptSyntaxError/StructuralError is raised; partial scripts never escape.
    """
    script = validate(_Parser(text, name).parse())
    logger.debug("parsed %s: %d scene(s)", name or "<script>", len(script.scenes))
    return script

# --- Formatting ------------------------------------------------------------------

def _num(v: float) -> str:
    v = float(v)
    return str(int(v)) if v.is_integer() else repr(v)

def _quote(s: str) -> str:
    return to_source(Expression((Literal(s),)))

def _appear_options(params) -> str:
    out = []
    if "position" in params:
        out.append(f"at {params['position'].value}")
    if "facing" in params:
        out.append(f"looking {params['facing'].value}")
    if "emotion" in params:
        out.append(f"as {params['emotion']}")
    return "".join(" " + o for o in out)

def _format_direction(d: StageDirection) -> str:
    kind, p = d.target.kind, d.params
    if kind is TargetKind.SCENE:
        return f"(Scene {_quote(p['name'])} begins)"
    if kind is TargetKind.BACKGROUND:
        return f"(Background changes to {_quote(p['id'])})"
    if kind is TargetKind.GUI:
        mode = f" {p['scaling'].value}" if "scaling" in p else ""
        return f"(GUI {p['element'].value} changes to {_quote(p['id'])}{mode})"

    if kind is TargetKind.ANIMATED:
        head = f"Animation {d.target.name}"
        if d.action is ActionKind.APPEAR:
            opts = ""
            if "position" in p:
                opts += f" at {_num(p['position'][0])} {_num(p['position'][1])}"
            if "scale" in p:
                opts += f" scale {_num(p['scale'])}"
            if "layer" in p:
                opts += f" layer {p['layer']}"
            return f"({head} appears{opts})"
        if d.action is ActionKind.MOVE:
            x, y = p["position"]
            return f"({head} moves to {_num(x)} {_num(y)})"
    else:
        head = d.target.name
        if d.action is ActionKind.APPEAR:
            return f"({head} appears{_appear_options(p)})"
        if d.action is ActionKind.DISAPPEAR:
            return f"({head} disappears)"
        if d.action is ActionKind.MOVE:
            return f"({head} moves to {p['position'].value})"

    if d.action is ActionKind.FADE:
        extra = _appear_options(p) if kind is TargetKind.ACTOR else ""
        return f"({head} fades {p['direction'].value}{extra})"
    if d.action is ActionKind.LOOK:
        return f"({head} looks {p['facing'].value})"
    raise ValueError(f"cannot format {d!r}")

def format_directive(d: Directive) -> str:
    if isinstance(d, Dialogue):
        emotion = f" ({d.emotion})" if d.emotion else ""
        return f"{d.speaker}:{emotion} {to_source(d.text)}"
    if isinstance(d, Log):
        return f"{{log {to_source(d.message)}}}"
    return _format_direction(d)

def dumps(script: Script, indent: str = "    ") -> str:
    """ Canonical .sabi text for a Script; loads(dumps(s)) == s. """
    blocks = []
    for scene in script.scenes.values():
        lines = [f"SCENE {scene.name}"]
        lines.extend(indent + format_directive(d) for d in scene.directives)
        lines.append("CURTAIN")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n"
