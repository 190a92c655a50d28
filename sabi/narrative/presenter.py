from __future__ import annotations
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional, Tuple

from sabi.assets import AnimationDefinition, AssetRegistry, CharacterDefinition
from sabi.narrative.commands import Command, CommandBus, Subsystem
from sabi.narrative.types import Facing, Fade, GuiElement, Position, ScalingMode
from sabi.settings import EffectsCfg
from sabi.ui.anim import Animator, Tween, ease_in_out_sine, ease_linear
from sabi.ui.text_model import DialogueReveal, RevealParams

logger = logging.getLogger(__name__)

@dataclass(eq=False)
class ActorState:
    definition: CharacterDefinition
    x: float                        # left edge, % of window width
    facing: Facing
    emotion: str
    outfit: str
    alpha: float = 1.0

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def sprite(self) -> Optional[str]:
        return self.definition.sprite(self.emotion, self.outfit)

@dataclass(eq=False)
class AnimationState:
    definition: AnimationDefinition
    position: Tuple[float, float]   # centre, % of window width/height
    scale: float = 1.0
    layer: int = 3
    facing: Facing = Facing.RIGHT
    alpha: float = 1.0
    t: float = 0.0

    @property
    def frame(self) -> int:
        d = self.definition
        return int(self.t * d.fps) % d.frames

@dataclass(eq=False)
class GuiState:
    sprite: str
    scaling: ScalingMode = ScalingMode.AUTO

class StagePresenter:
    """
    Consumes interpreter commands and keeps what the stage should look like.
    Pure state: the pygame view reads it every frame, nothing here draws.

    Move and fade run as tweens; when one finishes the presenter acknowledges it
    with bus.effect_completed(). Commands naming something it has no definition
    for are reported with bus.report_unresolved() and otherwise ignored.
    """
    def __init__(self,
                 bus: CommandBus,
                 assets: Optional[AssetRegistry] = None,
                 reveal: Optional[RevealParams] = None,
                 effects: Optional[EffectsCfg] = None,
                 log_lines: int = 4):
        self.bus = bus
        self.assets = assets or AssetRegistry()
        self.effects = effects or EffectsCfg()
        self.animator = Animator()
        self.dialogue = DialogueReveal(reveal)

        self.actors: Dict[str, ActorState] = {}
        self.animations: Dict[str, AnimationState] = {}
        self.gui: Dict[GuiElement, GuiState] = {}
        self.background: Optional[str] = None
        self.scene_name: Optional[str] = None
        self.narrating: bool = False
        self.log_lines: Deque[str] = deque(maxlen=log_lines)

        self._handlers = {
            Subsystem.ACTOR: self._on_actor,
            Subsystem.ANIMATED: self._on_animation,
            Subsystem.BACKGROUND: self._on_background,
            Subsystem.GUI: self._on_gui,
            Subsystem.DIALOGUE_BOX: self._on_dialogue,
            Subsystem.LOG: self._on_log,
            Subsystem.SCENE: self._on_scene,
        }
        for subsystem, handler in self._handlers.items():
            bus.register_handler(subsystem, handler)

    # ----- frame hooks ----------------------------------------------------------
    def update(self, dt: float) -> None:
        self.animator.update(dt)
        self.dialogue.update(dt)
        for anim in self.animations.values():
            anim.t += dt

    def on_player_press(self, awaiting_input: bool = False) -> bool:
        """
        First press completes a revealing line; the next one closes the box and
        returns True, meaning the host should call Interpreter.advance().
        With no line in the box (a log the cursor waits on) the press passes
        straight through when `awaiting_input` says the cursor wants one.
        """
        if self.dialogue.current is None:
            return awaiting_input
        if self.dialogue.on_player_press():
            self.dialogue.hide()
            return True
        return False

    @property
    def dialogue_visible(self) -> bool:
        return self.dialogue.current is not None

    @property
    def busy(self) -> bool:
        return self.animator.busy

    # ----- helpers ----------------------------------------------------------------
    def _unresolved(self, command: Command, reason: str) -> None:
        logger.debug("unresolved #%d: %s", command.id, reason)
        self.bus.report_unresolved(command.id, reason)

    def _completes(self, command: Command, then=None):
        def done() -> None:
            if then is not None:
                then()
            self.bus.effect_completed(command.id)
        return done

    def _character(self, command: Command) -> Optional[CharacterDefinition]:
        definition = self.assets.character(command.target or "")
        if definition is None:
            self._unresolved(command, f"no character named '{command.target}'")
        return definition

    def _stage_actor(self, command: Command, definition: CharacterDefinition, alpha: float) -> Optional[ActorState]:
        emotion = command.params.get("emotion") or definition.emotion
        if not definition.has_emotion(emotion):
            self._unresolved(command, f"'{definition.name}' has no emotion '{emotion}'")
            return None
        previous = self.actors.get(definition.name)
        if previous is not None:
            self.animator.cancel(previous)
        actor = ActorState(
            definition=definition,
            x=command.params.get("position", Position.CENTER).percent,
            facing=command.params.get("facing", Facing.RIGHT),
            emotion=emotion,
            outfit=definition.outfit,
            alpha=alpha,
        )
        self.actors[definition.name] = actor
        return actor

    # ----- handlers -----------------------------------------------------------------
    def _on_actor(self, command: Command) -> None:
        verb, name = command.verb, command.target or ""

        if verb == "appear":
            definition = self._character(command)
            if definition is not None:
                self._stage_actor(command, definition, alpha=1.0)
            return

        if verb == "fade" and command.params["direction"] is Fade.IN:
            definition = self._character(command)
            if definition is None:
                return
            actor = self._stage_actor(command, definition, alpha=0.0)
            if actor is not None:
                self.animator.add(Tween(actor, "alpha", 0.0, 1.0, self.effects.fade_duration,
                                        ease_linear, on_done=self._completes(command)))
            return

        actor = self.actors.get(name)
        if actor is None:
            self._unresolved(command, f"'{name}' is not on stage")
            return

        if verb == "disappear":
            self.animator.cancel(actor)
            del self.actors[name]
        elif verb == "fade":
            self.animator.add(Tween(actor, "alpha", actor.alpha, 0.0, self.effects.fade_duration, ease_linear,
                                    on_done=self._completes(command, lambda: self.actors.pop(name, None))))
        elif verb == "move":
            end = command.params["position"].percent
            self.animator.add(Tween(actor, "x", actor.x, end, self.effects.move_duration, ease_in_out_sine,
                                    on_done=self._completes(command)))
        elif verb == "look":
            actor.facing = command.params["facing"]
        else:
            self._unresolved(command, f"actors cannot '{verb}'")

    def _on_animation(self, command: Command) -> None:
        verb, name = command.verb, command.target or ""
        p = command.params

        if verb == "appear" or (verb == "fade" and p["direction"] is Fade.IN):
            definition = self.assets.animation(name)
            if definition is None:
                self._unresolved(command, f"no animation named '{name}'")
                return
            fading = verb == "fade"
            previous = self.animations.get(name)
            anim = AnimationState(
                definition=definition,
                position=tuple(p.get("position", previous.position if previous else (50.0, 50.0))),
                scale=float(p.get("scale", previous.scale if previous else 1.0)),
                layer=int(p.get("layer", previous.layer if previous else 3)),
                alpha=0.0 if fading else 1.0,
            )
            self.animations[name] = anim
            if fading:
                self.animator.add(Tween(anim, "alpha", 0.0, 1.0, self.effects.fade_duration, ease_linear,
                                        on_done=self._completes(command)))
            return

        anim = self.animations.get(name)
        if anim is None:
            self._unresolved(command, f"animation '{name}' is not on stage")
            return

        if verb == "fade":
            self.animator.add(Tween(anim, "alpha", anim.alpha, 0.0, self.effects.fade_duration, ease_linear,
                                    on_done=self._completes(command, lambda: self.animations.pop(name, None))))
        elif verb == "move":
            self.animator.add(Tween(anim, "position", anim.position, tuple(p["position"]),
                                    self.effects.move_duration, ease_in_out_sine,
                                    on_done=self._completes(command)))
        elif verb == "look":
            anim.facing = p["facing"]
        else:
            self._unresolved(command, f"animations cannot '{verb}'")

    def _on_background(self, command: Command) -> None:
        self.background = command.params["id"]

    def _on_gui(self, command: Command) -> None:
        element: GuiElement = command.params["element"]
        self.gui[element] = GuiState(command.params["id"], command.params.get("scaling", ScalingMode.AUTO))

    def _on_dialogue(self, command: Command) -> None:
        p = command.params
        speaker = p["speaker"]
        emotion = p.get("emotion")
        if emotion is not None:
            actor = self.actors.get(command.target or "")
            if actor is None:
                self._unresolved(command, f"emotion '{emotion}' for '{command.target}': not on stage")
            elif not actor.definition.has_emotion(emotion, actor.outfit):
                self._unresolved(command, f"'{actor.name}' has no emotion '{emotion}'")
            else:
                actor.emotion = emotion
        self.narrating = bool(p["narrator"])
        self.dialogue.show(speaker, p["text"])

    def _on_log(self, command: Command) -> None:
        text = command.params["text"]
        logger.info("[script] %s", text)
        self.log_lines.append(text)

    def _on_scene(self, command: Command) -> None:
        self.scene_name = command.params["name"]
