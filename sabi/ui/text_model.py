from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

@dataclass
class RevealParams:
    # Typewriter timing
    chars_per_sec: float = 50.0
    pause_short_s: float = 0.06             # Comma, semicolon, colon
    pause_long_s: float = 0.25              # Period, question, exclamation, new line
    pause_ellipsis_s: float = 0.35          # Special case for "..."

def compute_typewriter_timing(text: str, rp: RevealParams) -> Tuple[float, List[float]]:
    """
    Returns (total_duration_seconds, cumulative_reveal_fracs) for typewriter:
    - Punctuation shows immediately, then we pause BEFORE the next visible char.
    - '\\n' adds a long pause but is not a visible character.
    - Ellipsis '...' pauses after the first dot only.
    """
    cps = max(1e-6, float(rp.chars_per_sec))
    base = 1.0 / cps
    chars = list(text or "")
    n = len(chars)

    times: List[float] = []   # per-visible-char time
    carry = 0.0               # pause to apply before the NEXT visible char
    i = 0
    while i < n:
        c = chars[i]
        if c == "\n":
            carry += rp.pause_long_s
            i += 1
            continue

        t_char = base + carry
        carry = 0.0

        if c == "." and i + 2 < n and chars[i+1] == "." and chars[i+2] == ".":
            times.append(t_char)
            times.append(base + rp.pause_ellipsis_s)
            times.append(base)
            i += 3
            continue

        times.append(t_char)
        if c in ",;:":
            carry = rp.pause_short_s
        elif c in ".!?":
            carry = rp.pause_long_s
        i += 1

    # A line ending in punctuation keeps its pause as a trailing delay
    total = sum(times) + carry
    if total <= 0:
        return (0.0, [0.0])

    cm: List[float] = [0.0]
    acc = 0.0
    for t in times:
        acc += t
        cm.append(acc / total)
    return (total, cm)

@dataclass(eq=False)
class DialogueLine:
    speaker: str
    text: str
    duration: float = 0.0
    t: float = 0.0
    cm_reveal: List[float] = field(default_factory=lambda: [0.0])
    # text offsets of the visible (non-newline) characters
    char_index: List[int] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.t >= self.duration - 1e-4

    @property
    def visible_count(self) -> int:
        if self.finished:
            return len(self.char_index)
        u = self.t / self.duration
        return max(0, bisect.bisect_right(self.cm_reveal, u) - 1)

    @property
    def visible_text(self) -> str:
        count = self.visible_count
        if count >= len(self.char_index):
            return self.text
        if count == 0:
            return ""
        return self.text[:self.char_index[count - 1] + 1]

class DialogueReveal:
    """
    Owns the line currently in the dialogue box and its typewriter reveal.
    No rendering here; the stage view draws `current.visible_text`.
    """
    def __init__(self, reveal: Optional[RevealParams] = None):
        self.reveal = reveal or RevealParams()
        self.current: Optional[DialogueLine] = None

    def show(self, speaker: str, text: str) -> DialogueLine:
        duration, cm = compute_typewriter_timing(text, self.reveal)
        index = [i for i, c in enumerate(text or "") if c != "\n"]
        self.current = DialogueLine(speaker, text, duration, 0.0, cm, index)
        return self.current

    def hide(self) -> None:
        self.current = None

    def update(self, dt: float) -> bool:
        """ Returns True while the line is still revealing. """
        line = self.current
        if line is None or line.finished:
            return False
        line.t = min(line.duration, line.t + dt)
        return not line.finished

    def complete(self) -> bool:
        line = self.current
        if line is None or line.finished:
            return False
        line.t = line.duration
        return True

    def on_player_press(self) -> bool:
        """
        Finish the current line if it is still revealing (consumes the press).
        Returns True only when the line was already fully shown, i.e. the
        press should advance the story.
        """
        if self.current is None:
            return False
        if self.complete():
            return False
        return True

    @property
    def revealing(self) -> bool:
        return self.current is not None and not self.current.finished
