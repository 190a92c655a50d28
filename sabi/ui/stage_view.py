from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import pygame

from sabi.narrative.history import HistoryEntry
from sabi.narrative.presenter import StagePresenter
from sabi.narrative.types import Facing, GuiElement, ScalingMode
from sabi.resources import load_image, sheet_frame
from sabi.ui.fonts import FontCache, wrap_text

RGB = Tuple[int, int, int]

@dataclass
class StageStyle:
    bg_rgb: RGB = (14, 15, 18)
    text_rgb: RGB = (235, 235, 235)
    name_rgb: RGB = (255, 214, 140)
    narrator_rgb: RGB = (200, 200, 215)
    box_rgba: Tuple[int, int, int, int] = (10, 10, 16, 200)
    font_size: int = 26
    actor_height_frac: float = 0.78         # sprite height vs window height
    box_height_frac: float = 0.26
    slice_border_px: int = 16               # corner size for sliced GUI sprites
    padding_px: int = 18

# --- Image helpers ----------------------------------------------------------------

def draw_cover(surface: pygame.Surface, image: pygame.Surface, rect: pygame.Rect) -> None:
    """ Scale `image` to cover `rect`, keeping aspect, centred and clipped. """
    iw, ih = image.get_size()
    s = max(rect.w / iw, rect.h / ih)
    tw, th = max(1, int(iw * s)), max(1, int(ih * s))
    scaled = pygame.transform.smoothscale(image, (tw, th))
    prev = surface.get_clip()
    surface.set_clip(rect)
    surface.blit(scaled, (rect.x + (rect.w - tw) // 2, rect.y + (rect.h - th) // 2))
    surface.set_clip(prev)

def draw_sliced(surface: pygame.Surface, image: pygame.Surface, rect: pygame.Rect, border: int) -> None:
    """ Nine-slice: corners keep their size, edges and centre stretch to fill `rect`. """
    iw, ih = image.get_size()
    b = max(0, min(border, iw // 2, ih // 2, rect.w // 2, rect.h // 2))
    if b == 0:
        surface.blit(pygame.transform.smoothscale(image, rect.size), rect.topleft)
        return
    src_x = (0, b, iw - b, iw)
    src_y = (0, b, ih - b, ih)
    dst_x = (rect.x, rect.x + b, rect.right - b, rect.right)
    dst_y = (rect.y, rect.y + b, rect.bottom - b, rect.bottom)
    for row in range(3):
        for col in range(3):
            src = pygame.Rect(src_x[col], src_y[row], src_x[col + 1] - src_x[col], src_y[row + 1] - src_y[row])
            dst = pygame.Rect(dst_x[col], dst_y[row], dst_x[col + 1] - dst_x[col], dst_y[row + 1] - dst_y[row])
            if src.w <= 0 or src.h <= 0 or dst.w <= 0 or dst.h <= 0:
                continue
            piece = image.subsurface(src)
            if piece.get_size() != dst.size:
                piece = pygame.transform.smoothscale(piece, dst.size)
            surface.blit(piece, dst.topleft)

def _with_alpha(image: pygame.Surface, alpha: float) -> pygame.Surface:
    if alpha >= 1.0:
        return image
    out = image.copy()
    out.set_alpha(int(255 * max(0.0, alpha)))
    return out

# --- Stage ---------------------------------------------------------------------------

class StageView:
    """ Draws a StagePresenter's state: background, actors, animations, GUI and the dialogue box. """
    def __init__(self, style: Optional[StageStyle] = None, fonts: Optional[FontCache] = None):
        self.style = style or StageStyle()
        self.fonts = fonts or FontCache()

    def box_rect(self, surface: pygame.Surface) -> pygame.Rect:
        w, h = surface.get_size()
        bh = int(h * self.style.box_height_frac)
        m = self.style.padding_px
        return pygame.Rect(m, h - bh - m, w - 2 * m, bh)

    def draw(self, surface: pygame.Surface, stage: StagePresenter) -> None:
        rect = surface.get_rect()
        surface.fill(self.style.bg_rgb)
        if stage.background:
            draw_cover(surface, load_image(f"backgrounds/{stage.background}"), rect)
        self._draw_actors(surface, stage)
        self._draw_animations(surface, stage)
        if stage.dialogue_visible:
            self._draw_dialogue(surface, stage)
        self._draw_log(surface, stage)

    def _draw_actors(self, surface: pygame.Surface, stage: StagePresenter) -> None:
        sw, sh = surface.get_size()
        target_h = int(sh * self.style.actor_height_frac)
        for actor in stage.actors.values():
            sprite = actor.sprite
            if sprite is None:
                continue
            image = load_image(sprite)
            iw, ih = image.get_size()
            image = pygame.transform.smoothscale(image, (max(1, int(iw * target_h / ih)), target_h))
            # sprites are drawn facing right
            if actor.facing is Facing.LEFT:
                image = pygame.transform.flip(image, True, False)
            surface.blit(_with_alpha(image, actor.alpha), (int(sw * actor.x / 100.0), sh - target_h))

    def _draw_animations(self, surface: pygame.Surface, stage: StagePresenter) -> None:
        sw, sh = surface.get_size()
        for anim in sorted(stage.animations.values(), key=lambda a: a.layer):
            d = anim.definition
            frame = sheet_frame(d.spritesheet, anim.frame, (d.frame_width, d.frame_height))
            if anim.scale != 1.0:
                frame = pygame.transform.smoothscale(
                    frame, (max(1, int(d.frame_width * anim.scale)), max(1, int(d.frame_height * anim.scale))))
            if anim.facing is Facing.LEFT:
                frame = pygame.transform.flip(frame, True, False)
            cx, cy = int(sw * anim.position[0] / 100.0), int(sh * anim.position[1] / 100.0)
            surface.blit(_with_alpha(frame, anim.alpha), frame.get_rect(center=(cx, cy)))

    def _draw_panel(self, surface: pygame.Surface, stage: StagePresenter, element: GuiElement, rect: pygame.Rect) -> None:
        gui = stage.gui.get(element)
        if gui is None:
            panel = pygame.Surface(rect.size, pygame.SRCALPHA)
            pygame.draw.rect(panel, self.style.box_rgba, panel.get_rect(), border_radius=10)
            surface.blit(panel, rect.topleft)
            return
        image = load_image(f"gui/{gui.sprite}")
        if gui.scaling is ScalingMode.SLICED:
            draw_sliced(surface, image, rect, self.style.slice_border_px)
        else:
            surface.blit(pygame.transform.smoothscale(image, rect.size), rect.topleft)

    def _draw_dialogue(self, surface: pygame.Surface, stage: StagePresenter) -> None:
        st = self.style
        line = stage.dialogue.current
        box = self.box_rect(surface)
        self._draw_panel(surface, stage, GuiElement.TEXTBOX, box)

        font = self.fonts.get(st.font_size)
        if line.speaker and not stage.narrating:
            name = self.fonts.get(st.font_size, bold=True).render(line.speaker, True, st.name_rgb)
            nrect = pygame.Rect(box.x, box.y - name.get_height() - st.padding_px,
                                name.get_width() + 2 * st.padding_px, name.get_height() + st.padding_px)
            self._draw_panel(surface, stage, GuiElement.NAMEBOX, nrect)
            surface.blit(name, name.get_rect(center=nrect.center))

        color = st.narrator_rgb if stage.narrating else st.text_rgb
        y = box.y + st.padding_px
        for text in wrap_text(font, line.visible_text, box.w - 2 * st.padding_px):
            if y + font.get_linesize() > box.bottom:
                break
            surface.blit(font.render(text, True, color), (box.x + st.padding_px, y))
            y += font.get_linesize()

    def _draw_log(self, surface: pygame.Surface, stage: StagePresenter) -> None:
        font = self.fonts.get(max(12, self.style.font_size - 8))
        y = self.style.padding_px
        for text in stage.log_lines:
            surface.blit(font.render(text, True, self.style.narrator_rgb), (self.style.padding_px, y))
            y += font.get_linesize()

# --- Overlays ---------------------------------------------------------------------------

class HistoryOverlay:
    """ Scrollback of everything said so far, newest at the bottom. """
    def __init__(self, style: Optional[StageStyle] = None, fonts: Optional[FontCache] = None):
        self.style = style or StageStyle()
        self.fonts = fonts or FontCache()
        self.scroll = 0                     # entries hidden below the bottom edge

    def scroll_by(self, n: int, total: int) -> None:
        self.scroll = max(0, min(max(0, total - 1), self.scroll + n))

    def draw(self, surface: pygame.Surface, entries: Sequence[HistoryEntry]) -> None:
        st = self.style
        shade = pygame.Surface(surface.get_size(), pygame.SRCALPHA)
        shade.fill((0, 0, 0, 210))
        surface.blit(shade, (0, 0))

        font = self.fonts.get(st.font_size - 4)
        bold = self.fonts.get(st.font_size - 4, bold=True)
        width = surface.get_width() - 4 * st.padding_px
        y = surface.get_height() - 2 * st.padding_px
        end = len(entries) - self.scroll
        for i in range(end - 1, -1, -1):
            entry = entries[i]
            lines = wrap_text(font, entry.resolved_text, width)
            block = (len(lines) + (1 if entry.speaker else 0)) * font.get_linesize() + st.padding_px // 2
            if y - block < st.padding_px:
                break
            y -= block
            ty = y
            if entry.speaker:
                surface.blit(bold.render(entry.speaker, True, st.name_rgb), (2 * st.padding_px, ty))
                ty += font.get_linesize()
            for text in lines:
                surface.blit(font.render(text, True, st.text_rgb), (2 * st.padding_px, ty))
                ty += font.get_linesize()

def draw_error(surface: pygame.Surface, fonts: FontCache, message: str, style: Optional[StageStyle] = None) -> None:
    st = style or StageStyle()
    surface.fill((40, 8, 12))
    font = fonts.get(st.font_size - 4)
    y = st.padding_px
    for text in wrap_text(font, message, surface.get_width() - 2 * st.padding_px):
        surface.blit(font.render(text, True, (255, 200, 200)), (st.padding_px, y))
        y += font.get_linesize()
