from __future__ import annotations
from typing import Optional


class ScriptError(ValueError):
    """ Base class for everything that stops a script from loading. """


class ScriptSyntaxError(ScriptError):
    """
    Malformed line, unknown verb, unterminated quote...
    Carries the location of the offending token so hosts can point at it.
    """
    def __init__(self,
                 message: str,
                 *,
                 source: Optional[str] = None,
                 line: int = 0,
                 column: int = 0,
                 offset: int = 0,
                 token: str = ""):
        self.message = message
        self.source = source
        self.line = line
        self.column = column
        self.offset = offset        # byte offset of the token in the UTF-8 source
        self.token = token
        super().__init__(self._format())

    def _format(self) -> str:
        where = f"{self.source or '<script>'}:{self.line}:{self.column}"
        near = f" near {self.token!r}" if self.token else ""
        return f"{where}: {self.message}{near}"


class StructuralError(ScriptError):
    """ Script parsed fine but references something that is not there (e.g. a jump target). """
    def __init__(self, message: str, *, source: Optional[str] = None, line: int = 0):
        self.message = message
        self.source = source
        self.line = line
        super().__init__(f"{source or '<script>'}:{line}: {message}")


class ScriptLoadError(ScriptError):
    """ The script file could not be read at all (missing, unreadable, not UTF-8). """
    def __init__(self, message: str, *, path: Optional[str] = None):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class AssetDefinitionError(ValueError):
    """ Character/animation definition file does not match its schema. """


class SabiWarning(UserWarning):
    """ Recoverable condition. Recorded and logged, never raised by the runtime. """


class ResolutionWarning(SabiWarning):
    """ Missing variable, or a stage-direction target the presentation layer does not know. """


class ProtocolViolation(SabiWarning):
    """ advance/effect_completed arrived while the cursor was not waiting for it. """
