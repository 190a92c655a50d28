"""
Resumable script interpreter.

The host drives it once per frame with tick(); between ticks it sits in one of
two wait states until the matching signal arrives:

    READY --Dialogue-----------> AWAITING_ADVANCE_INPUT --advance()----------> READY
    READY --move/fade----------> AWAITING_EFFECT_COMPLETION --effect_completed(id)--> READY
    READY --other direction/log-> READY (next directive)
    READY --Scene "x" begins---> SCENE_TRANSITION -> READY at x[0]
    READY --CURTAIN------------> HALTED

Signals that do not match the current wait state are dropped and recorded as
ProtocolViolation; nothing is ever queued.
"""
from __future__ import annotations
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol

from sabi.narrative.commands import Command, CommandBus, dispatch, is_durational
from sabi.narrative.errors import ProtocolViolation, ResolutionWarning, SabiWarning
from sabi.narrative.expression import evaluate
from sabi.narrative.history import HistoryEntry, HistoryRecorder
from sabi.narrative.parser import format_directive
from sabi.narrative.types import (
    Script, Scene, ScriptId, Directive, Dialogue, Log, StageDirection, Expression,
    VariableRef, SpeakerKind,
)
from sabi.settings import RuntimeCfg

logger = logging.getLogger(__name__)

class WaitState(Enum):
    READY = "ready"
    AWAITING_ADVANCE_INPUT = "awaiting_advance_input"
    AWAITING_EFFECT_COMPLETION = "awaiting_effect_completion"
    SCENE_TRANSITION = "scene_transition"     # internal, never observed between calls
    HALTED = "halted"

class ScriptSource(Protocol):
    def load(self, script_id: ScriptId) -> Script: ...

@dataclass(eq=False)
class ExecutionCursor:
    script_id: ScriptId
    script: Script = field(repr=False)
    scene_name: str
    directive_index: int = 0                # == len(scene) once CURTAIN is reached
    wait_state: WaitState = WaitState.READY
    pending_command_id: Optional[int] = None

    @property
    def scene(self) -> Scene:
        return self.script.scene(self.scene_name)

    @property
    def at_curtain(self) -> bool:
        return self.directive_index >= len(self.scene)

    def current(self) -> Optional[Directive]:
        return None if self.at_curtain else self.scene[self.directive_index]

class Interpreter:
    def __init__(self,
                 loader: ScriptSource,
                 variables: Optional[Mapping[str, str]] = None,
                 *,
                 bus: Optional[CommandBus] = None,
                 history: Optional[HistoryRecorder] = None,
                 settings: Optional[RuntimeCfg] = None):
        self.loader = loader
        self.variables: Mapping[str, str] = variables if variables is not None else {}
        self.bus = bus if bus is not None else CommandBus()
        self.history = history if history is not None else HistoryRecorder()
        self.settings = settings if settings is not None else RuntimeCfg()
        self.cursor: Optional[ExecutionCursor] = None
        self.diagnostics: List[SabiWarning] = []
        # ids are never reused, so acknowledgements meant for a discarded cursor can't match
        self._ids = itertools.count(1)

        self.bus.on_effect_completed(self.effect_completed)
        self.bus.on_unresolved(self.report_unresolved)

    # ----- queries --------------------------------------------------------------
    @property
    def state(self) -> Optional[WaitState]:
        return self.cursor.wait_state if self.cursor else None

    @property
    def is_halted(self) -> bool:
        return self.cursor is not None and self.cursor.wait_state is WaitState.HALTED

    # ----- inbound events -------------------------------------------------------
    def start(self, script_id: ScriptId) -> ExecutionCursor:
        """
        Throw away the current cursor (no draining) and begin script_id at its
        first scene. Load errors propagate and leave no cursor behind.
        """
        if self.cursor is not None:
            logger.info("discarding cursor for %s at %s[%d]", self.cursor.script_id,
                        self.cursor.scene_name, self.cursor.directive_index)
        self.cursor = None
        script = self.loader.load(script_id)
        first = script.first_scene
        self.cursor = ExecutionCursor(script_id, script, first.name)
        logger.info("started %s at scene '%s'", script_id, first.name)
        return self.cursor

    def advance(self) -> bool:
        """ Player asked to continue. Only honoured while a dialogue line is waiting. """
        cur = self.cursor
        if cur is None or cur.wait_state is not WaitState.AWAITING_ADVANCE_INPUT:
            self._violation(f"advance() ignored while {self._describe()}")
            return False
        self._resume(cur)
        return True

    def effect_completed(self, command_id: int) -> bool:
        cur = self.cursor
        if (cur is None
                or cur.wait_state is not WaitState.AWAITING_EFFECT_COMPLETION
                or cur.pending_command_id != command_id):
            self._violation(f"effect_completed(#{command_id}) ignored while {self._describe()}")
            return False
        self._resume(cur)
        return True

    def report_unresolved(self, command_id: int, reason: str) -> None:
        """
        A subsystem could not act on a command (unknown actor, emotion...).
        Recorded as a warning; if the cursor waits on that command it moves on as if done.
        """
        warning = ResolutionWarning(f"command #{command_id}: {reason}")
        logger.warning("%s", warning)
        self.diagnostics.append(warning)
        cur = self.cursor
        if (cur is not None
                and cur.wait_state is WaitState.AWAITING_EFFECT_COMPLETION
                and cur.pending_command_id == command_id):
            self._resume(cur)

    # ----- stepping -------------------------------------------------------------
    def tick(self) -> List[Command]:
        """
        Run READY directives until the cursor suspends or halts.
        Returns the commands emitted during this tick, in order.
        """
        emitted: List[Command] = []
        cur = self.cursor
        steps = 0
        # a handler may call start() while we publish; stop stepping the old cursor then
        while cur is not None and cur is self.cursor and cur.wait_state is WaitState.READY:
            if steps >= self.settings.max_steps_per_tick:
                logger.warning("%s: %d directives in one tick without waiting, yielding",
                               cur.script_id, steps)
                break
            steps += 1
            self._step(cur, emitted)
        return emitted

    def _step(self, cur: ExecutionCursor, emitted: List[Command]) -> None:
        directive = cur.current()
        if directive is None:
            cur.wait_state = WaitState.HALTED
            logger.info("%s: CURTAIN on scene '%s'", cur.script_id, cur.scene_name)
            return

        if isinstance(directive, StageDirection) and directive.is_jump:
            command = dispatch(directive, {}, next(self._ids))
            cur.wait_state = WaitState.SCENE_TRANSITION
            target = command.params["name"]
            logger.info("%s: scene '%s' -> '%s'", cur.script_id, cur.scene_name, target)
            cur.scene_name = target
            cur.directive_index = 0
            cur.pending_command_id = None
            cur.wait_state = WaitState.READY
            self._publish(command, emitted)
            return

        resolved = self._resolve(directive)
        command = dispatch(directive, resolved, next(self._ids))

        # state changes before publishing so handlers may signal back synchronously
        if isinstance(directive, Dialogue):
            self._record(directive, resolved)
            self._wait(cur, WaitState.AWAITING_ADVANCE_INPUT, command)
        elif isinstance(directive, Log):
            self._record(directive, resolved)
            if self.settings.log_waits_for_advance:
                self._wait(cur, WaitState.AWAITING_ADVANCE_INPUT, command)
            else:
                cur.directive_index += 1
        elif is_durational(directive):
            self._wait(cur, WaitState.AWAITING_EFFECT_COMPLETION, command)
        else:
            cur.directive_index += 1
        self._publish(command, emitted)

    # ----- helpers --------------------------------------------------------------
    def _wait(self, cur: ExecutionCursor, state: WaitState, command: Command) -> None:
        cur.wait_state = state
        cur.pending_command_id = command.id

    def _resume(self, cur: ExecutionCursor) -> None:
        cur.directive_index += 1
        cur.pending_command_id = None
        cur.wait_state = WaitState.READY

    def _publish(self, command: Command, emitted: List[Command]) -> None:
        emitted.append(command)
        self.bus.publish(command)

    def _evaluate(self, expression: Expression) -> str:
        return evaluate(expression, self.variables, self.diagnostics.append)

    def _resolve(self, directive: Directive) -> Dict[str, Any]:
        if isinstance(directive, Log):
            return {"text": self._evaluate(directive.message)}
        if isinstance(directive, Dialogue):
            speaker = directive.speaker
            if speaker.kind is SpeakerKind.MAIN_CHARACTER:
                name = self._evaluate(Expression((VariableRef(self.settings.player_name_variable),)))
            elif speaker.kind is SpeakerKind.NARRATOR:
                name = ""
            else:
                name = speaker.name
            return {"speaker": name, "text": self._evaluate(directive.text)}
        return {}

    def _record(self, directive: Directive, resolved: Mapping[str, Any]) -> None:
        speaker = resolved.get("speaker") or None
        self.history.record(HistoryEntry(speaker, resolved["text"], format_directive(directive)))

    def _describe(self) -> str:
        cur = self.cursor
        if cur is None:
            return "no script is running"
        return f"{cur.wait_state.value} at {cur.scene_name}[{cur.directive_index}]"

    def _violation(self, message: str) -> None:
        warning = ProtocolViolation(message)
        logger.warning("%s", warning)
        self.diagnostics.append(warning)
