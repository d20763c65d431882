"""Per-document binding state shared by the form views."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from lxml import etree

from omeeditor.ome.tree import AttributedTree


@dataclass(slots=True)
class BindingSession:
    """The open tree and the node each binding target resolved to.

    ``loading`` is set while document values are pushed into controls, so
    change notifications raised by those pushes are not treated as edits.
    """

    tree: AttributedTree | None = None
    bound_nodes: dict[str, etree._Element] = field(default_factory=dict)
    loading: bool = False

    def reset(self, tree: AttributedTree | None = None) -> None:
        self.tree = tree
        self.bound_nodes.clear()
        self.loading = False

    def bound(self, key: str) -> etree._Element | None:
        return self.bound_nodes.get(key)

    def bind(self, key: str, node: etree._Element) -> etree._Element:
        self.bound_nodes[key] = node
        return node

    def unbind(self, key: str) -> None:
        self.bound_nodes.pop(key, None)

    @contextmanager
    def guard(self) -> Iterator[None]:
        previous = self.loading
        self.loading = True
        try:
            yield
        finally:
            self.loading = previous
