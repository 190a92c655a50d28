from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Optional, Dict, Tuple, Any, Mapping, Union, Iterator

@dataclass(frozen=True)
class ScriptId:
    chapter: str                # e.g. "Chapter 1"
    act: str                    # e.g. "1"  -> <root>/Chapter 1/1.sabi

    def __str__(self) -> str:
        return f"{self.chapter}/{self.act}"

# --- Enumerations carried in stage-direction params ---------------------------

class Position(Enum):
    CENTER = "center"
    FAR_LEFT = "far left"
    FAR_RIGHT = "far right"
    LEFT = "left"
    RIGHT = "right"
    INVISIBLE_LEFT = "invisible left"
    INVISIBLE_RIGHT = "invisible right"

    @property
    def percent(self) -> float:
        """ Horizontal offset of the sprite's left edge, in % of window width. """
        return _POSITION_PERCENT[self]

_POSITION_PERCENT: Dict[Position, float] = {
    Position.CENTER: 35.0,
    Position.FAR_LEFT: 5.0,
    Position.FAR_RIGHT: 65.0,
    Position.LEFT: 20.0,
    Position.RIGHT: 50.0,
    Position.INVISIBLE_LEFT: -40.0,
    Position.INVISIBLE_RIGHT: 140.0,
}

class Facing(Enum):
    LEFT = "left"
    RIGHT = "right"

class Fade(Enum):
    IN = "in"
    OUT = "out"

class ScalingMode(Enum):
    SLICED = "sliced"
    AUTO = "auto"

class GuiElement(Enum):
    TEXTBOX = "textbox"
    NAMEBOX = "namebox"

class SpeakerKind(Enum):
    CHARACTER = "character"
    MAIN_CHARACTER = "MC"
    NARRATOR = "info"

class TargetKind(Enum):
    ACTOR = "actor"
    ANIMATED = "animation"
    GUI = "gui"
    BACKGROUND = "background"
    SCENE = "scene"

class ActionKind(Enum):
    APPEAR = "appear"
    DISAPPEAR = "disappear"
    FADE = "fade"
    MOVE = "move"
    LOOK = "look"
    CHANGE = "change"
    JUMP = "jump"

# --- Expressions ----------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    text: str

@dataclass(frozen=True)
class VariableRef:
    name: str

Segment = Union[Literal, VariableRef]

@dataclass(frozen=True)
class Expression:
    """ Literal text and variable references, resolved to a string only when executed. """
    segments: Tuple[Segment, ...] = ()

    def variables(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.segments if isinstance(s, VariableRef))

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)

# --- Directives -------------------------------------------------------------------

@dataclass(frozen=True)
class Speaker:
    kind: SpeakerKind
    name: Optional[str] = None      # only set for CHARACTER

    @staticmethod
    def character(name: str) -> "Speaker":
        return Speaker(SpeakerKind.CHARACTER, name)

    def __str__(self) -> str:
        return self.name if self.kind is SpeakerKind.CHARACTER else self.kind.value

MAIN_CHARACTER = Speaker(SpeakerKind.MAIN_CHARACTER)
NARRATOR = Speaker(SpeakerKind.NARRATOR)

@dataclass(frozen=True)
class Target:
    kind: TargetKind
    name: Optional[str] = None      # actor/animation name or GUI element; None for Scene/Background

@dataclass(frozen=True)
class Dialogue:
    speaker: Speaker
    text: Expression
    emotion: Optional[str] = None
    line: int = field(default=0, compare=False)     # source line, for diagnostics only

@dataclass(frozen=True)
class StageDirection:
    target: Target
    action: ActionKind
    params: Mapping[str, Any] = field(default_factory=dict)
    line: int = field(default=0, compare=False)

    def __post_init__(self) -> None:
        # read-only view so a parsed directive can never be mutated in place
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    @property
    def is_jump(self) -> bool:
        return self.target.kind is TargetKind.SCENE and self.action is ActionKind.JUMP

@dataclass(frozen=True)
class Log:
    message: Expression
    line: int = field(default=0, compare=False)

Directive = Union[Dialogue, StageDirection, Log]

# --- Containers ---------------------------------------------------------------------

@dataclass(frozen=True)
class Scene:
    name: str
    directives: Tuple[Directive, ...] = ()
    line: int = field(default=0, compare=False)

    def __len__(self) -> int:
        return len(self.directives)

    def __getitem__(self, index: int) -> Directive:
        return self.directives[index]

@dataclass(frozen=True)
class Script:
    scenes: Mapping[str, Scene]     # scene name -> Scene, in source order
    name: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "scenes", MappingProxyType(dict(self.scenes)))

    @property
    def first_scene(self) -> Scene:
        return next(iter(self.scenes.values()))

    def scene(self, name: str) -> Scene:
        return self.scenes[name]

    def __contains__(self, name: object) -> bool:
        return name in self.scenes
