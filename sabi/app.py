from __future__ import annotations

import logging
import pygame

from sabi.settings import AppCfg
from sabi.resources import after_display_init
from sabi.scene import SceneManager

logger = logging.getLogger(__name__)


class GameApp:
    """
    App shell: window, frame clock and the scene stack. Everything the story
    does happens inside the active scene's update/draw.
    """

    def __init__(self, cfg: AppCfg):
        # imported here so the game package is only needed once a window opens
        from game.scenes.novel import NovelScene

        self.cfg = cfg
        pygame.init()
        pygame.display.set_caption(cfg.window.title)

        self._flags = pygame.RESIZABLE | pygame.DOUBLEBUF
        self.screen = pygame.display.set_mode(
            (int(cfg.window.width), int(cfg.window.height)),
            flags=self._flags,
        )
        after_display_init()

        self.clock = pygame.time.Clock()
        self.running = True

        self.scenes = SceneManager(self.screen)
        self.scenes.push(NovelScene(self.scenes, cfg))

    # ------------------------------------------------------------------ #
    # Main loop
    # ------------------------------------------------------------------ #
    def run(self) -> None:
        logger.info("running at %d fps", self.cfg.fps)
        while self.running and not self.scenes.request_quit:
            # clamp so a stalled frame doesn't skip whole effects
            dt = min(0.1, self.clock.tick(self.cfg.fps) / 1000.0)

            for e in pygame.event.get():
                if e.type == pygame.QUIT:
                    self.running = False
                    break

                if e.type == pygame.VIDEORESIZE:
                    self._resize_to(e.w, e.h)
                    continue

                if self.scenes.handle_event(e):
                    continue

                if e.type == pygame.KEYDOWN:
                    if e.key == pygame.K_F11:
                        pygame.display.toggle_fullscreen()
                        continue
                    if (e.key == pygame.K_q) and (pygame.key.get_mods() & pygame.KMOD_CTRL):
                        self.running = False
                        continue

            self.scenes.update(dt)
            self.scenes.draw()
            pygame.display.flip()

        pygame.quit()

    def _resize_to(self, w: int, h: int) -> None:
        self.screen = pygame.display.set_mode((max(1, int(w)), max(1, int(h))), flags=self._flags)
        self.scenes.screen = self.screen
