from __future__ import annotations
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import yaml

from sabi.narrative.errors import AssetDefinitionError

logger = logging.getLogger(__name__)

DEFINITION_SUFFIXES = (".yaml", ".yml", ".json")    # JSON is read by the YAML loader as-is

@dataclass(eq=False)
class Outfit:
    name: str
    emotions: Dict[str, str]                # emotion -> sprite id (path under assets/)

@dataclass(eq=False)
class CharacterDefinition:
    name: str
    outfits: Dict[str, Outfit]
    outfit: str                             # default outfit
    emotion: str                            # default emotion
    description: str = ""

    def sprite(self, emotion: Optional[str] = None, outfit: Optional[str] = None) -> Optional[str]:
        """ Sprite id for outfit/emotion (defaults when omitted), or None if undefined. """
        o = self.outfits.get(outfit or self.outfit)
        if o is None:
            return None
        return o.emotions.get(emotion or self.emotion)

    def has_emotion(self, emotion: str, outfit: Optional[str] = None) -> bool:
        return self.sprite(emotion, outfit) is not None

@dataclass(eq=False)
class AnimationDefinition:
    name: str
    spritesheet: str
    frames: int
    fps: float
    frame_width: int
    frame_height: int

    @property
    def frame_duration(self) -> float:
        return 1.0 / self.fps

# --- Parsing -----------------------------------------------------------------------

def _read_mapping(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise AssetDefinitionError(f"{path}: {e.strerror or e}") from e
    except yaml.YAMLError as e:
        raise AssetDefinitionError(f"{path}: not valid YAML/JSON ({e})") from e
    if not isinstance(data, dict):
        raise AssetDefinitionError(f"{path}: top level must be a mapping")
    return data

def _require_str(data: Dict[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise AssetDefinitionError(f"{where}: '{key}' must be a non-empty string")
    return value.strip()

def _require_positive(data: Dict[str, Any], key: str, where: str, kind=int):
    value = data.get(key)
    # bool is an int subclass; `frames: yes` is a typo, not a count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise AssetDefinitionError(f"{where}: '{key}' must be a number")
    if kind is int and not float(value).is_integer():
        raise AssetDefinitionError(f"{where}: '{key}' must be a whole number")
    if value <= 0:
        raise AssetDefinitionError(f"{where}: '{key}' must be positive")
    return kind(value)

def character_from_dict(data: Dict[str, Any], where: str = "<character>") -> CharacterDefinition:
    """
    Accepts:
        name: Fynn
        description: optional text
        outfit: casual              # optional, defaults to the first outfit
        emotion: neutral            # optional, defaults to the outfit's first emotion
        outfits:
          casual:
            neutral: characters/fynn/casual/neutral.png
            happy: characters/fynn/casual/happy.png
    """
    name = _require_str(data, "name", where)
    raw_outfits = data.get("outfits")
    if not isinstance(raw_outfits, dict) or not raw_outfits:
        raise AssetDefinitionError(f"{where}: 'outfits' must be a non-empty mapping")

    outfits: Dict[str, Outfit] = {}
    for oname, emotions in raw_outfits.items():
        if not isinstance(emotions, dict) or not emotions:
            raise AssetDefinitionError(f"{where}: outfit '{oname}' must map emotions to sprites")
        table: Dict[str, str] = {}
        for emotion, sprite in emotions.items():
            if not isinstance(sprite, str) or not sprite.strip():
                raise AssetDefinitionError(f"{where}: sprite for '{oname}/{emotion}' must be a path")
            table[str(emotion)] = sprite.strip()
        outfits[str(oname)] = Outfit(str(oname), table)

    outfit = str(data.get("outfit") or next(iter(outfits)))
    if outfit not in outfits:
        raise AssetDefinitionError(f"{where}: default outfit '{outfit}' is not defined")
    emotion = str(data.get("emotion") or next(iter(outfits[outfit].emotions)))
    if emotion not in outfits[outfit].emotions:
        raise AssetDefinitionError(f"{where}: default emotion '{emotion}' missing from outfit '{outfit}'")

    return CharacterDefinition(
        name=name,
        outfits=outfits,
        outfit=outfit,
        emotion=emotion,
        description=str(data.get("description") or ""),
    )

def animation_from_dict(data: Dict[str, Any], where: str = "<animation>") -> AnimationDefinition:
    return AnimationDefinition(
        name=_require_str(data, "name", where),
        spritesheet=_require_str(data, "spritesheet", where),
        frames=_require_positive(data, "frames", where),
        fps=_require_positive(data, "fps", where, kind=float),
        frame_width=_require_positive(data, "frame_width", where),
        frame_height=_require_positive(data, "frame_height", where),
    )

def load_character_file(path: Union[str, Path]) -> CharacterDefinition:
    p = Path(path)
    return character_from_dict(_read_mapping(p), str(p))

def load_animation_file(path: Union[str, Path]) -> AnimationDefinition:
    p = Path(path)
    return animation_from_dict(_read_mapping(p), str(p))

# --- Registry ----------------------------------------------------------------------

def _definition_files(folder: Path) -> Iterable[Path]:
    if not folder.is_dir():
        return []
    return sorted(p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in DEFINITION_SUFFIXES)

@dataclass
class AssetRegistry:
    """ Character and animation definitions by name, plus the root their sprite ids are relative to. """
    characters: Dict[str, CharacterDefinition] = field(default_factory=dict)
    animations: Dict[str, AnimationDefinition] = field(default_factory=dict)
    root: Optional[Path] = None

    @classmethod
    def from_directory(cls, root: Union[str, Path]) -> "AssetRegistry":
        """
        Scan <root>/characters and <root>/animations. A definition that fails to
        parse aborts the scan; two files declaring the same name do too.
        """
        root = Path(root)
        reg = cls(root=root)
        for path in _definition_files(root / "characters"):
            reg.add_character(load_character_file(path), where=str(path))
        for path in _definition_files(root / "animations"):
            reg.add_animation(load_animation_file(path), where=str(path))
        logger.info("assets: %d characters, %d animations from %s",
                    len(reg.characters), len(reg.animations), root)
        return reg

    def add_character(self, definition: CharacterDefinition, where: str = "") -> None:
        if definition.name in self.characters:
            raise AssetDefinitionError(f"{where or definition.name}: character '{definition.name}' defined twice")
        self.characters[definition.name] = definition

    def add_animation(self, definition: AnimationDefinition, where: str = "") -> None:
        if definition.name in self.animations:
            raise AssetDefinitionError(f"{where or definition.name}: animation '{definition.name}' defined twice")
        self.animations[definition.name] = definition

    def character(self, name: str) -> Optional[CharacterDefinition]:
        return self.characters.get(name)

    def animation(self, name: str) -> Optional[AnimationDefinition]:
        return self.animations.get(name)
