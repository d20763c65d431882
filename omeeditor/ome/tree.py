"""Attributed element tree over an lxml OME-XML document."""

from __future__ import annotations

import re

from lxml import etree

from omeeditor.logs import get_logger

logger = get_logger(__name__)

# Tags created under a grouping element instead of directly under the root.
CONTAINER_TAGS = {
    "Laser": "Instrument",
    "Detector": "Instrument",
    "Objective": "Instrument",
    "Filter": "Instrument",
    "Microscope": "Instrument",
}

_ID_RE = re.compile(r"^(?P<prefix>.+):(?P<index>\d+)$")


class OmeParseError(ValueError):
    """Raised when OME-XML text cannot be parsed into an element tree."""


def local_name(node: etree._Element) -> str:
    return etree.QName(node).localname


class AttributedTree:
    """Wraps the root element of an OME-XML document.

    Tags are matched by local name, so documents with or without the OME
    namespace behave the same. New elements take the root's namespace.
    """

    def __init__(self, root: etree._Element) -> None:
        self.root = root
        self._namespace = etree.QName(root).namespace
        self._created_containers: list[etree._Element] = []

    @classmethod
    def from_string(cls, text: str | bytes) -> AttributedTree:
        if isinstance(text, str):
            text = text.encode("utf-8")
        parser = etree.XMLParser(remove_blank_text=True, resolve_entities=False)
        try:
            root = etree.fromstring(text.strip(), parser)
        except etree.XMLSyntaxError as exc:
            raise OmeParseError(f"Invalid OME-XML: {exc}") from exc
        return cls(root)

    def to_string(self, pretty_print: bool = True) -> str:
        return etree.tostring(
            self.root,
            encoding="unicode",
            pretty_print=pretty_print,
        )

    def to_bytes(self) -> bytes:
        return etree.tostring(
            self.root,
            xml_declaration=True,
            encoding="UTF-8",
            pretty_print=True,
        )

    def nodes_by_tag(self, tag: str) -> list[etree._Element]:
        return [node for node in self.root.iter(etree.Element) if local_name(node) == tag]

    def contains(self, node: etree._Element) -> bool:
        # Detached elements keep their document, so walk up the parents.
        top = node
        while top.getparent() is not None:
            top = top.getparent()
        return top is self.root

    @staticmethod
    def has_attribute(node: etree._Element, name: str) -> bool:
        return name in node.attrib

    @staticmethod
    def get_attribute(node: etree._Element, name: str) -> str | None:
        return node.get(name)

    @staticmethod
    def set_attribute(node: etree._Element, name: str, value: str) -> None:
        node.set(name, value)

    @staticmethod
    def attribute_items(node: etree._Element) -> list[tuple[str, str]]:
        return [(etree.QName(name).localname, value) for name, value in node.attrib.items()]

    @staticmethod
    def character_data(node: etree._Element) -> str:
        return (node.text or "").strip()

    @staticmethod
    def children(node: etree._Element) -> list[etree._Element]:
        return [child for child in node.iterchildren(etree.Element)]

    def create_node(self, tag: str, attributes: dict[str, str] | None = None) -> etree._Element:
        """Create ``tag`` under its logical container and give it a fresh ID."""
        parent = self._container_for(tag)
        node = etree.SubElement(parent, self._qualify(tag))
        node.set("ID", self.next_id(tag))
        for name, value in (attributes or {}).items():
            node.set(name, value)
        logger.debug("Created <%s ID=%s> under <%s>", tag, node.get("ID"), local_name(parent))
        return node

    def remove_node(self, node: etree._Element) -> None:
        parent = node.getparent()
        if parent is None or not self.contains(node):
            raise ValueError(f"<{local_name(node)}> is not an element of this document")
        parent.remove(node)
        logger.debug("Removed <%s> from <%s>", local_name(node), local_name(parent))

        if any(parent is created for created in self._created_containers) and len(parent) == 0:
            grandparent = parent.getparent()
            if grandparent is not None:
                grandparent.remove(parent)
            self._created_containers = [
                created for created in self._created_containers if created is not parent
            ]

    def next_id(self, tag: str) -> str:
        used = set()
        for node in self.nodes_by_tag(tag):
            match = _ID_RE.match(node.get("ID", ""))
            if match and match.group("prefix") == tag:
                used.add(int(match.group("index")))
        index = 0
        while index in used:
            index += 1
        return f"{tag}:{index}"

    def _container_for(self, tag: str) -> etree._Element:
        container_tag = CONTAINER_TAGS.get(tag)
        if container_tag is None:
            return self.root
        existing = [node for node in self.children(self.root) if local_name(node) == container_tag]
        if existing:
            return existing[0]
        container = etree.SubElement(self.root, self._qualify(container_tag))
        container.set("ID", self.next_id(container_tag))
        self._created_containers.append(container)
        return container

    def _qualify(self, tag: str) -> str:
        return f"{{{self._namespace}}}{tag}" if self._namespace else tag
