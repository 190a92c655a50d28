from __future__ import annotations
import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional

from sabi.narrative.types import (
    Directive, Dialogue, StageDirection, Log, SpeakerKind, TargetKind, ActionKind,
    Position, Facing, Fade, ScalingMode,
)

logger = logging.getLogger(__name__)

class Subsystem(Enum):
    ACTOR = "actor"
    ANIMATED = "animation"
    BACKGROUND = "background"
    GUI = "gui"
    DIALOGUE_BOX = "dialogue"
    LOG = "log"
    SCENE = "scene"

_SUBSYSTEM_BY_TARGET: Dict[TargetKind, Subsystem] = {
    TargetKind.ACTOR: Subsystem.ACTOR,
    TargetKind.ANIMATED: Subsystem.ANIMATED,
    TargetKind.BACKGROUND: Subsystem.BACKGROUND,
    TargetKind.GUI: Subsystem.GUI,
    TargetKind.SCENE: Subsystem.SCENE,
}

# Effects that take time on screen; the cursor waits for effect_completed
DURATIONAL_ACTIONS = frozenset({ActionKind.MOVE, ActionKind.FADE})

# Defaults applied when the script leaves a parameter out
ANIMATION_DEFAULT_POSITION = (50.0, 50.0)
ANIMATION_DEFAULT_LAYER = 3

@dataclass(frozen=True)
class Command:
    """ One resolved instruction addressed to an external subsystem. """
    id: int
    subsystem: Subsystem
    verb: str
    target: Optional[str] = None
    params: Mapping[str, Any] = field(default_factory=dict)
    durational: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

def is_durational(directive: Directive) -> bool:
    return isinstance(directive, StageDirection) and directive.action in DURATIONAL_ACTIONS

def _stage_params(d: StageDirection) -> Dict[str, Any]:
    params = dict(d.params)
    kind, action = d.target.kind, d.action
    if kind is TargetKind.ACTOR and (action is ActionKind.APPEAR or params.get("direction") is Fade.IN):
        params.setdefault("position", Position.CENTER)
        params.setdefault("facing", Facing.RIGHT)
    elif kind is TargetKind.ANIMATED and action is ActionKind.APPEAR:
        params.setdefault("position", ANIMATION_DEFAULT_POSITION)
        params.setdefault("scale", 1.0)
        params.setdefault("layer", ANIMATION_DEFAULT_LAYER)
    elif kind is TargetKind.GUI:
        params.setdefault("scaling", ScalingMode.AUTO)
    return params

def dispatch(directive: Directive, resolved_values: Mapping[str, Any], command_id: int) -> Command:
    """
    Translate a directive plus its already-evaluated text into a Command.
    No side effects; `resolved_values` carries "text" (and "speaker" for dialogue).
    """
    if isinstance(directive, Dialogue):
        kind = directive.speaker.kind
        params: Dict[str, Any] = {
            "speaker": resolved_values.get("speaker", ""),
            "text": resolved_values["text"],
            "narrator": kind is SpeakerKind.NARRATOR,
            "main_character": kind is SpeakerKind.MAIN_CHARACTER,
        }
        if directive.emotion is not None:
            params["emotion"] = directive.emotion
        return Command(command_id, Subsystem.DIALOGUE_BOX, "say", directive.speaker.name, params)

    if isinstance(directive, Log):
        return Command(command_id, Subsystem.LOG, "emit", None, {"text": resolved_values["text"]})

    if isinstance(directive, StageDirection):
        return Command(
            command_id,
            _SUBSYSTEM_BY_TARGET[directive.target.kind],
            directive.action.value,
            directive.target.name,
            _stage_params(directive),
            durational=directive.action in DURATIONAL_ACTIONS,
        )

    raise TypeError(f"not a directive: {directive!r}")

# --- Bus ----------------------------------------------------------------------------

class CommandBus:
    """
    Outbound: commands go to the handlers registered for their subsystem; if a
    subsystem has none they wait in `outbox` for the host to drain().
    Inbound: effect_completed() and report_unresolved() are forwarded to listeners
    (the interpreter subscribes to both).
    """
    def __init__(self) -> None:
        self._handlers: Dict[Subsystem, List[Callable[[Command], None]]] = defaultdict(list)
        self._completed: List[Callable[[int], None]] = []
        self._unresolved: List[Callable[[int, str], None]] = []
        self.outbox: Deque[Command] = deque()

    # ----- outbound ---------------------------------------------------------
    def register_handler(self, subsystem: Subsystem, func: Callable[[Command], None]) -> None:
        self._handlers[subsystem].append(func)

    def publish(self, command: Command) -> None:
        handlers = self._handlers.get(command.subsystem)
        logger.debug("command #%d %s.%s %s %s", command.id, command.subsystem.value, command.verb,
                     command.target or "", dict(command.params))
        if not handlers:
            self.outbox.append(command)
            return
        for handler in list(handlers):
            handler(command)

    def drain(self) -> List[Command]:
        out = list(self.outbox)
        self.outbox.clear()
        return out

    # ----- inbound ----------------------------------------------------------
    def on_effect_completed(self, listener: Callable[[int], None]) -> None:
        self._completed.append(listener)

    def on_unresolved(self, listener: Callable[[int, str], None]) -> None:
        self._unresolved.append(listener)

    def effect_completed(self, command_id: int) -> None:
        for listener in list(self._completed):
            listener(command_id)

    def report_unresolved(self, command_id: int, reason: str) -> None:
        for listener in list(self._unresolved):
            listener(command_id, reason)
