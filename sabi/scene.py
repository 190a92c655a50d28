from __future__ import annotations
from typing import Iterator, List, Optional, Protocol
import pygame


class Scene(Protocol):
    """Anything the app loop can drive. Overlays are just scenes pushed on top."""
    def on_enter(self, prev: Optional["Scene"]) -> None: ...
    def on_exit(self, nxt: Optional["Scene"]) -> None: ...

    def update(self, dt: float) -> None: ...
    def draw(self, surface: pygame.Surface) -> None: ...
    def handle_event(self, e: pygame.event.Event) -> bool: ...


class SceneManager:
    """
    The novel sits at the bottom; history (and any later menu) is pushed over it.
    Only the top scene receives input and time, so the story underneath is frozen
    while an overlay is open. Drawing walks the whole stack bottom->top.
    """
    def __init__(self, screen: pygame.Surface) -> None:
        self.screen = screen
        self.request_quit = False
        self._scenes: List[Scene] = []

    def __len__(self) -> int:
        return len(self._scenes)

    def __iter__(self) -> Iterator[Scene]:
        return iter(self._scenes)

    def active(self) -> Optional[Scene]:
        return self._scenes[-1] if self._scenes else None

    def push(self, scene: Scene) -> None:
        below = self.active()
        self._scenes.append(scene)
        scene.on_enter(below)

    def pop(self) -> Optional[Scene]:
        if not self._scenes:
            return None
        leaving = self._scenes.pop()
        leaving.on_exit(self.active())
        if not self._scenes:
            # nothing left to show
            self.request_quit = True
        return leaving

    def handle_event(self, e: pygame.event.Event) -> bool:
        top = self.active()
        return bool(top and top.handle_event(e))

    def update(self, dt: float) -> None:
        top = self.active()
        if top is not None:
            top.update(dt)

    def draw(self) -> None:
        for scene in self._scenes:
            scene.draw(self.screen)
