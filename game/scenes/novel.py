# game/scenes/novel.py
from __future__ import annotations
import logging
from typing import Optional
import pygame

from sabi.scene import Scene, SceneManager
from sabi.settings import AppCfg
from sabi.assets import AssetRegistry
from sabi.resources import set_assets_root
from sabi.narrative.commands import CommandBus
from sabi.narrative.cursor import Interpreter, WaitState
from sabi.narrative.errors import AssetDefinitionError, ScriptError
from sabi.narrative.history import HistoryRecorder
from sabi.narrative.loader import ScriptLoader
from sabi.narrative.presenter import StagePresenter
from sabi.narrative.types import ScriptId
from sabi.ui.fonts import FontCache
from sabi.ui.stage_view import HistoryOverlay, StageStyle, StageView, draw_error
from sabi.ui.text_model import RevealParams

logger = logging.getLogger(__name__)

def _is_advance_key(key: int) -> bool:
    return key in (pygame.K_SPACE, pygame.K_RETURN, pygame.K_KP_ENTER)


class NovelScene(Scene):
    """
    Plays one script:
    - loads asset definitions and the start script from the configured paths
    - ticks the interpreter every frame; the StagePresenter consumes its commands
    - Space/Enter/left click: finish the line being typed, then advance
    - H opens the history overlay, Esc quits
    Load errors are drawn on screen instead of crashing the window.
    """

    def __init__(self, mgr: SceneManager, cfg: AppCfg):
        self.mgr = mgr
        self.cfg = cfg
        self.fonts = FontCache()
        self.style = StageStyle(bg_rgb=tuple(cfg.window.bg_rgb))
        self.view = StageView(self.style, self.fonts)
        self.error: Optional[str] = None

        self.bus = CommandBus()
        self.history = HistoryRecorder()
        self.loader = ScriptLoader(cfg.paths.scripts)
        self.interpreter = Interpreter(
            self.loader,
            cfg.variables,
            bus=self.bus,
            history=self.history,
            settings=cfg.runtime,
        )

        set_assets_root(cfg.paths.assets)
        try:
            assets = AssetRegistry.from_directory(cfg.paths.assets)
        except AssetDefinitionError as e:
            logger.error("asset definitions: %s", e)
            self.error = f"Asset definition error\n\n{e}"
            assets = AssetRegistry()

        rv = cfg.reveal
        self.presenter = StagePresenter(
            self.bus,
            assets,
            reveal=RevealParams(rv.chars_per_sec, rv.pause_short_s, rv.pause_long_s, rv.pause_ellipsis_s),
            effects=cfg.effects,
        )

    # --- Scene lifecycle ----------------------------------------------------
    def on_enter(self, prev: Optional[Scene]) -> None:
        if self.error:
            return
        script_id = ScriptId(self.cfg.start.chapter, self.cfg.start.act)
        try:
            self.interpreter.start(script_id)
        except ScriptError as e:
            logger.error("could not start %s: %s", script_id, e)
            self.error = f"Could not load {script_id}\n\n{e}"

    def on_exit(self, nxt: Optional[Scene]) -> None:
        pass

    # --- Loop ---------------------------------------------------------------
    def handle_event(self, e: pygame.event.Event) -> bool:
        if e.type == pygame.KEYDOWN:
            if e.key == pygame.K_ESCAPE:
                self.mgr.request_quit = True
                return True
            if e.key == pygame.K_h and not self.error:
                self.mgr.push(HistoryScene(self.mgr, self))
                return True
            if _is_advance_key(e.key):
                self._press()
                return True
            return False

        if e.type == pygame.MOUSEBUTTONDOWN and e.button == 1:
            self._press()
            return True

        if e.type == pygame.MOUSEWHEEL and e.y > 0 and not self.error:
            self.mgr.push(HistoryScene(self.mgr, self))
            return True
        return False

    def update(self, dt: float) -> None:
        if self.error:
            return
        # effects finishing this frame may release the cursor before it is ticked
        self.presenter.update(dt)
        self.interpreter.tick()

    def draw(self, surface: pygame.Surface) -> None:
        if self.error:
            draw_error(surface, self.fonts, self.error, self.style)
            return
        self.view.draw(surface, self.presenter)
        if self.interpreter.is_halted:
            font = self.fonts.get(self.style.font_size)
            label = font.render("The End  (Esc to quit)", True, self.style.text_rgb)
            surface.blit(label, label.get_rect(center=surface.get_rect().center))

    # --- helpers ------------------------------------------------------------
    def _press(self) -> None:
        if self.error:
            return
        waiting = self.interpreter.state is WaitState.AWAITING_ADVANCE_INPUT
        if self.presenter.on_player_press(waiting):
            self.interpreter.advance()


class HistoryScene(Scene):
    """ Overlay pushed on top of the novel; H, Esc or a click closes it. """

    def __init__(self, mgr: SceneManager, novel: NovelScene):
        self.mgr = mgr
        self.novel = novel
        self.overlay = HistoryOverlay(novel.style, novel.fonts)

    def on_enter(self, prev: Optional[Scene]) -> None:
        self.overlay.scroll = 0

    def on_exit(self, nxt: Optional[Scene]) -> None:
        pass

    def handle_event(self, e: pygame.event.Event) -> bool:
        total = len(self.novel.history)
        if e.type == pygame.KEYDOWN:
            if e.key in (pygame.K_h, pygame.K_ESCAPE):
                self.mgr.pop()
            elif e.key in (pygame.K_UP, pygame.K_PAGEUP):
                self.overlay.scroll_by(1 if e.key == pygame.K_UP else 5, total)
            elif e.key in (pygame.K_DOWN, pygame.K_PAGEDOWN):
                self.overlay.scroll_by(-1 if e.key == pygame.K_DOWN else -5, total)
            return True
        if e.type == pygame.MOUSEWHEEL:
            self.overlay.scroll_by(e.y, total)
            return True
        if e.type == pygame.MOUSEBUTTONDOWN and e.button in (1, 3):
            self.mgr.pop()
            return True
        return False

    def update(self, dt: float) -> None:
        # story is paused while reading back; nothing ticks
        pass

    def draw(self, surface: pygame.Surface) -> None:
        self.overlay.draw(surface, self.novel.history.entries())
