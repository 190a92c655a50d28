from __future__ import annotations
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Iterator, List, Optional, Union

@dataclass(frozen=True)
class HistoryEntry:
    speaker: Optional[str]      # resolved display name; None for narration and log lines
    resolved_text: str
    directive_echo: str         # the directive as it reads in the script

class HistoryView(Sequence):
    """
    Read-only window onto a recorder. Iteration is lazy and can be restarted;
    entries recorded after the view was taken show up on the next pass.
    """
    def __init__(self, entries: List[HistoryEntry]) -> None:
        self._entries = entries

    def __getitem__(self, index: Union[int, slice]):
        return self._entries[index]     # slices come back as copies

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        i = 0
        while i < len(self._entries):
            yield self._entries[i]
            i += 1

class HistoryRecorder:
    """ Append-only transcript for the scrollback UI. Lives for the whole session. """
    def __init__(self) -> None:
        self._entries: List[HistoryEntry] = []

    def record(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)

    def entries(self) -> HistoryView:
        return HistoryView(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
