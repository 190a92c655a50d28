from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Union

Value = Union[float, Sequence[float]]

def ease_linear(t: float) -> float: return t
def ease_out_cubic(t: float) -> float: t = max(0.0, min(1.0, t)); return 1 - (1 - t) ** 3
def ease_in_out_sine(t: float) -> float:
    t = max(0.0, min(1.0, t))
    return 0.5 - 0.5 * math.cos(math.pi * t)

def _lerp(a: Value, b: Value, u: float) -> Value:
    if isinstance(a, (int, float)):
        return a + (b - a) * u
    return tuple(x + (y - x) * u for x, y in zip(a, b))

@dataclass
class Tween:
    """ Drives obj.attr from start to end; numbers or equal-length tuples (x, y). """
    obj: Any
    attr: str
    start: Value
    end: Value
    duration: float
    ease: Callable[[float], float] = ease_out_cubic
    t: float = 0.0
    on_done: Optional[Callable[[], None]] = None
    done: bool = False

    def update(self, dt: float) -> bool:
        if self.done:
            return True
        self.t += dt
        u = 1.0 if self.duration <= 0 else max(0.0, min(1.0, self.t / self.duration))
        setattr(self.obj, self.attr, _lerp(self.start, self.end, self.ease(u)))
        if u >= 1.0:
            self.finish()
        return self.done

    def finish(self) -> None:
        """ Jump to the end value and fire on_done (once). """
        if self.done:
            return
        setattr(self.obj, self.attr, self.end)
        self.done = True
        if self.on_done:
            self.on_done()

class Animator:
    def __init__(self):
        self._tweens: List[Tween] = []

    def add(self, tween: Tween) -> Tween:
        # a new tween on the same attribute supersedes the running one
        for tw in self._tweens:
            if tw.obj is tween.obj and tw.attr == tween.attr:
                tw.finish()
        self._tweens[:] = [tw for tw in self._tweens if not tw.done]
        self._tweens.append(tween)
        return tween

    def update(self, dt: float) -> None:
        # iterate a copy: on_done callbacks may add tweens
        for tw in list(self._tweens):
            tw.update(dt)
        self._tweens[:] = [tw for tw in self._tweens if not tw.done]

    def finish_all(self) -> None:
        for tw in list(self._tweens):
            tw.finish()
        self._tweens[:] = [tw for tw in self._tweens if not tw.done]

    def cancel(self, obj: Any) -> None:
        """ Drop every tween on obj without firing callbacks. """
        self._tweens[:] = [tw for tw in self._tweens if tw.obj is not obj]

    @property
    def busy(self) -> bool:
        return bool(self._tweens)

    def __len__(self) -> int:
        return len(self._tweens)
