"""
Text aggregator — ordered concatenation of extracted text.

Parts are keyed by the object's position in the storage listing, so the
rendered document follows listing order even if jobs were to complete
out of order. One aggregator per pipeline request; never shared.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.processing.classifier import FileKind


@dataclass(frozen=True)
class AggregatedPart:
    position:   int
    source_key: str
    kind:       FileKind
    text:       str

    @property
    def header(self) -> str:
        return f"=== {self.source_key} [{self.kind.value}] ==="


class TextAggregator:

    def __init__(self) -> None:
        self._parts: dict[int, AggregatedPart] = {}

    def append(self, position: int, source_key: str, kind: FileKind, text: str) -> None:
        if position in self._parts:
            raise ValueError(f"Listing position {position} already aggregated")
        self._parts[position] = AggregatedPart(position, source_key, kind, text)

    @property
    def parts(self) -> list[AggregatedPart]:
        return [self._parts[p] for p in sorted(self._parts)]

    def __len__(self) -> int:
        return len(self._parts)

    def render(self) -> str:
        """Blank line, header, text — per part. Empty when nothing was aggregated."""
        return "".join(f"\n\n{part.header}\n{part.text}" for part in self.parts)
