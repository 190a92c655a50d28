from __future__ import annotations
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from sabi.narrative.errors import ScriptLoadError
from sabi.narrative.parser import loads, validate
from sabi.narrative.types import Script, ScriptId

logger = logging.getLogger(__name__)

SCRIPT_EXTENSION = ".sabi"

def load_script_file(path: Union[str, Path]) -> Script:
    """
    Read a single .sabi file and compile it.
    Raises ScriptLoadError when the file cannot be read or decoded, and
    ScriptSyntaxError/StructuralError (tagged with the path) when it does not compile.
    """
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise ScriptLoadError(e.strerror or str(e), path=str(p)) from e
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ScriptLoadError(f"not UTF-8 text ({e.reason} at byte {e.start})", path=str(p)) from e
    return loads(text, name=str(p))

class ScriptLoader:
    """
    Resolves ScriptIds to <root>/<chapter>/<act>.sabi and keeps every compiled
    Script for the rest of the session. Scripts are immutable, so cursors can
    share them freely.
    """
    def __init__(self, root: Union[str, Path], extension: str = SCRIPT_EXTENSION) -> None:
        self.root = Path(root)
        self.extension = extension
        self._cache: Dict[ScriptId, Script] = {}

    def path_for(self, script_id: ScriptId) -> Path:
        return self.root / script_id.chapter / f"{script_id.act}{self.extension}"

    def load(self, script_id: ScriptId) -> Script:
        cached = self._cache.get(script_id)
        if cached is not None:
            return cached
        path = self.path_for(script_id)
        script = load_script_file(path)
        self._cache[script_id] = script
        logger.info("loaded %s from %s (%d scenes)", script_id, path, len(script.scenes))
        return script

    def register(self, script_id: ScriptId, script: Script) -> None:
        """ Seed the cache with an already compiled script (it is validated again). """
        self._cache[script_id] = validate(script)

    def invalidate(self, script_id: Optional[ScriptId] = None) -> None:
        """ Drop one cached script (or all of them) so the next load re-reads the file. """
        if script_id is None:
            self._cache.clear()
        else:
            self._cache.pop(script_id, None)

    def __contains__(self, script_id: object) -> bool:
        return script_id in self._cache
