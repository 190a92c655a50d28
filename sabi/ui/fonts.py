from __future__ import annotations
from collections import OrderedDict
from typing import List, Optional, Tuple
import pygame

_FontKey = Tuple[Optional[str], int, bool]

class FontCache:
    """
    Small LRU of pygame.font.Font objects keyed by (path, size, bold).
    path=None uses pygame's default font.
    """
    def __init__(self, path: Optional[str] = None, max_entries: int = 16) -> None:
        self.path = path
        self._cache: "OrderedDict[_FontKey, pygame.font.Font]" = OrderedDict()
        self._max = max(1, int(max_entries))

    def get(self, size: int, *, bold: bool = False) -> pygame.font.Font:
        k: _FontKey = (self.path, int(size), bool(bold))
        f = self._cache.get(k)
        if f is not None:
            self._cache.move_to_end(k)
            return f
        if not pygame.font.get_init():
            pygame.font.init()
        f = pygame.font.Font(self.path, k[1])
        f.set_bold(k[2])
        self._cache[k] = f
        while len(self._cache) > self._max:
            self._cache.popitem(last=False)
        return f

    def clear(self) -> None:
        self._cache.clear()

def wrap_text(font: pygame.font.Font, text: str, width: int) -> List[str]:
    """ Greedy word wrap; explicit newlines always break. Words wider than `width` get a line of their own. """
    lines: List[str] = []
    for paragraph in (text or "").split("\n"):
        cur = ""
        for word in paragraph.split(" "):
            candidate = word if not cur else f"{cur} {word}"
            if cur and font.size(candidate)[0] > width:
                lines.append(cur)
                cur = word
            else:
                cur = candidate
        lines.append(cur)
    return lines
