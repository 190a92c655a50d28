from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

@dataclass
class WindowCfg:
    width: int = 1280
    height: int = 800
    title: str = "Sabi"
    bg_rgb: Tuple[int, int, int] = (14, 15, 18)

@dataclass
class RevealCfg:
    chars_per_sec: float = 50.0             # Typewriter speed for dialogue lines
    pause_short_s: float = 0.06             # , ; :
    pause_long_s: float = 0.25              # . ! ?
    pause_ellipsis_s: float = 0.35          # "..."

@dataclass
class EffectsCfg:
    move_duration: float = 0.9              # Seconds for a full move tween
    fade_duration: float = 0.6              # Seconds for a fade in/out

@dataclass
class RuntimeCfg:
    log_waits_for_advance: bool = False     # False: {log} fires and the cursor keeps going
    max_steps_per_tick: int = 1000          # Guards against jump loops with nothing to wait on
    player_name_variable: str = "playername"

@dataclass
class PathsCfg:
    scripts: str = "game/content"
    assets: str = "game/assets"

@dataclass
class StartCfg:
    chapter: str = "Chapter 1"
    act: str = "1"

@dataclass
class AppCfg:
    fps: int = 60
    log_level: str = "INFO"
    window: WindowCfg = field(default_factory=WindowCfg)
    reveal: RevealCfg = field(default_factory=RevealCfg)
    effects: EffectsCfg = field(default_factory=EffectsCfg)
    runtime: RuntimeCfg = field(default_factory=RuntimeCfg)
    paths: PathsCfg = field(default_factory=PathsCfg)
    start: StartCfg = field(default_factory=StartCfg)
    variables: Dict[str, str] = field(default_factory=dict)   # constants table, e.g. playername


def _get(d: dict, path: str, default: Any):
    cur = d
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return default
        cur = cur[part]
    return cur

def load_settings(path: str = "game/config/defaults.yaml") -> AppCfg:
    """ Read YAML settings; every key is optional and a missing file means all defaults. """
    data = {}
    p = Path(path)
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    variables = _get(data, "variables", {}) or {}
    return AppCfg(
        fps=int(_get(data, "fps", 60)),
        log_level=str(_get(data, "logging.level", "INFO")).upper(),
        window=WindowCfg(
            width=int(_get(data, "window.width", 1280)),
            height=int(_get(data, "window.height", 800)),
            title=str(_get(data, "window.title", "Sabi")),
            bg_rgb=tuple(_get(data, "window.bg_rgb", (14, 15, 18))),
        ),
        reveal=RevealCfg(
            chars_per_sec=float(_get(data, "reveal.chars_per_sec", 50.0)),
            pause_short_s=float(_get(data, "reveal.pause_short_s", 0.06)),
            pause_long_s=float(_get(data, "reveal.pause_long_s", 0.25)),
            pause_ellipsis_s=float(_get(data, "reveal.pause_ellipsis_s", 0.35)),
        ),
        effects=EffectsCfg(
            move_duration=float(_get(data, "effects.move_duration", 0.9)),
            fade_duration=float(_get(data, "effects.fade_duration", 0.6)),
        ),
        runtime=RuntimeCfg(
            log_waits_for_advance=bool(_get(data, "runtime.log_waits_for_advance", False)),
            max_steps_per_tick=max(1, int(_get(data, "runtime.max_steps_per_tick", 1000))),
            player_name_variable=str(_get(data, "runtime.player_name_variable", "playername")),
        ),
        paths=PathsCfg(
            scripts=str(_get(data, "paths.scripts", "game/content")),
            assets=str(_get(data, "paths.assets", "game/assets")),
        ),
        start=StartCfg(
            chapter=str(_get(data, "start.chapter", "Chapter 1")),
            act=str(_get(data, "start.act", "1")),
        ),
        variables={str(k): str(v) for k, v in variables.items()},
    )
