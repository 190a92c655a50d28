from __future__ import annotations

import sys
import logging
from pathlib import Path
from typing import Dict, Tuple, Optional, Union

import pygame

logger = logging.getLogger(__name__)

# --- Project / assets root ----------------------------------------------------

def project_root() -> Path:
    """
    Works in dev and with PyInstaller-like bundles.
    """
    if getattr(sys, "_MEIPASS", None):  # PyInstaller temp dir
        return Path(sys._MEIPASS)  # type: ignore[attr-defined]
    return Path(__file__).resolve().parents[1]  # sabi/ -> [project root]

_assets_root = project_root() / "game" / "assets"

def set_assets_root(root: Union[str, Path]) -> None:
    """ Point sprite ids at another directory (relative paths are taken from the project root). """
    global _assets_root
    p = Path(root)
    _assets_root = p if p.is_absolute() else project_root() / p
    clear_image_cache()

def asset_path(*parts: str) -> Path:
    return _assets_root.joinpath(*parts)

# --- Image cache + loading ----------------------------------------------------

# Cache key: (sprite id, scale); scale is None | float | (w, h)
_ImageKey = Tuple[str, Union[None, float, Tuple[int, int]]]
_image_cache: Dict[_ImageKey, pygame.Surface] = {}
_missing: set = set()

def _display_ready() -> bool:
    try:
        return pygame.display.get_init() and pygame.display.get_surface() is not None
    except pygame.error:
        return False

def _convert_for_display(surf: pygame.Surface) -> pygame.Surface:
    if not _display_ready():
        return surf
    return surf.convert_alpha()

def _scaled(surf: pygame.Surface, scale: Union[None, float, Tuple[int, int]]) -> pygame.Surface:
    if scale is None:
        return surf
    if isinstance(scale, (float, int)):
        w, h = surf.get_width(), surf.get_height()
        return pygame.transform.smoothscale(surf, (max(1, int(w * scale)), max(1, int(h * scale))))
    w, h = scale
    return pygame.transform.smoothscale(surf, (max(1, w), max(1, h)))

def fallback_surface(size: Tuple[int, int] = (48, 48)) -> pygame.Surface:
    """
    A loud magenta/black box so missing assets are obvious.
    """
    surf = pygame.Surface(size, pygame.SRCALPHA)
    surf.fill((255, 0, 255))
    pygame.draw.rect(surf, (0, 0, 0), surf.get_rect(), 2)
    pygame.draw.line(surf, (0, 0, 0), (0, 0), (size[0], size[1]), 2)
    pygame.draw.line(surf, (0, 0, 0), (0, size[1]), (size[0], 0), 2)
    return surf

def load_image(
    sprite_id: str,
    *,
    scale: Union[None, float, Tuple[int, int]] = None,
    fallback_size: Tuple[int, int] = (48, 48),
) -> pygame.Surface:
    """
    Load and cache an image by sprite id, i.e. its path under the assets root
    ("backgrounds/hall.png"). Ids without an extension are tried as .png.
    A missing file is reported once and replaced by a visible fallback surface.
    """
    key: _ImageKey = (sprite_id, scale)
    cached = _image_cache.get(key)
    if cached is not None:
        return cached

    path = asset_path(*Path(sprite_id).parts)
    if not path.suffix:
        path = path.with_suffix(".png")
    try:
        surf = pygame.image.load(str(path))
    except (pygame.error, FileNotFoundError) as e:
        if sprite_id not in _missing:
            logger.warning("Could not load image '%s': %s", path, e)
            _missing.add(sprite_id)
        surf = fallback_surface(fallback_size)

    surf = _convert_for_display(_scaled(surf, scale))
    _image_cache[key] = surf
    return surf

def sheet_frame(spritesheet: str, index: int, frame_size: Tuple[int, int]) -> pygame.Surface:
    """ Cut frame `index` out of a horizontal strip spritesheet (wraps around rows). """
    sheet = load_image(spritesheet, fallback_size=frame_size)
    fw, fh = frame_size
    cols = max(1, sheet.get_width() // fw)
    x, y = (index % cols) * fw, (index // cols) * fh
    rect = pygame.Rect(x, y, fw, fh).clip(sheet.get_rect())
    if rect.width == 0 or rect.height == 0:
        return fallback_surface(frame_size)
    return sheet.subsurface(rect)

def after_display_init() -> None:
    """
    Call once right after pygame.display.set_mode(...); converts surfaces
    that were cached before the display existed.
    """
    if not _display_ready():
        return
    for key, surf in list(_image_cache.items()):
        _image_cache[key] = surf.convert_alpha()

def clear_image_cache() -> None:
    _image_cache.clear()
    _missing.clear()
