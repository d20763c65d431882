"""Document model for an opened OME-XML or OME-TIFF source."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from omeeditor.ome.tree import AttributedTree


class SourceKind(str, Enum):
    XML = "xml"
    TIFF = "tiff"


@dataclass(slots=True)
class OmeDocument:
    path: Path | None
    kind: SourceKind
    raw_text: str
    tree: AttributedTree | None = None
    modified: bool = False

    @property
    def is_raw(self) -> bool:
        return self.tree is None

    @property
    def display_name(self) -> str:
        return self.path.name if self.path is not None else "(untitled)"

    def to_xml(self) -> str:
        if self.tree is None:
            return self.raw_text
        return self.tree.to_string()
