"""Keep template field controls and OME-XML attributes consistent.

A field's ``valueMap`` names where its value lives in the document:

``Tag.Attribute``
    attribute on the first ``Tag`` element.
``Tag[Key=Value;Key2=Value2].Attribute``
    attribute on the ``Tag`` element whose ``Key`` equals ``Value``.
``Tag[Key=Value;Key2=Value2]``
    on a bool field, whether such an element exists. Checking the field
    creates the element with every listed attribute; clearing it removes the
    element again.

Only the first ``Key=Value`` pair identifies an element, so a toggle and the
fields that edit the element it creates share one binding.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import re

from lxml import etree

from omeeditor.logs import get_logger
from omeeditor.model.template import FieldType, FieldValue, TemplateField
from omeeditor.ome.tree import AttributedTree
from omeeditor.state.session import BindingSession

logger = get_logger(__name__)

_VALUE_MAP_RE = re.compile(
    r"^\s*(?P<tag>[A-Za-z_][\w-]*)"
    r"(?:\[(?P<presets>[^\]]*)\])?"
    r"(?:\.(?P<attribute>[A-Za-z_][\w-]*))?\s*$"
)


class BindingError(RuntimeError):
    """Raised when a field cannot be bound to, or written into, the document."""


@dataclass(frozen=True, slots=True)
class BindingTarget:
    tag: str
    presets: tuple[tuple[str, str], ...] = ()
    occurrence: int = 0

    @property
    def key(self) -> str:
        key = self.tag
        if self.presets:
            name, value = self.presets[0]
            key += f"[{name}={value}]"
        if self.occurrence:
            key += f"#{self.occurrence}"
        return key

    @property
    def identifying_attribute(self) -> str | None:
        return self.presets[0][0] if self.presets else None

    def matches(self, node: etree._Element) -> bool:
        if not self.presets:
            return True
        name, value = self.presets[0]
        return node.get(name) == value


@dataclass(frozen=True, slots=True)
class ValueMapping:
    target: BindingTarget
    attribute: str | None = None

    @property
    def is_toggle(self) -> bool:
        return self.attribute is None


@dataclass(slots=True)
class FieldBinding:
    field: TemplateField
    mapping: ValueMapping

    @property
    def label(self) -> str:
        occurrence = self.mapping.target.occurrence
        return f"{self.field.name}[{occurrence}]" if occurrence else self.field.name


def parse_value_map(text: str) -> ValueMapping:
    match = _VALUE_MAP_RE.match(text)
    if match is None:
        raise BindingError(f"Malformed value map '{text}'")

    presets: list[tuple[str, str]] = []
    if match.group("presets") is not None:
        for item in match.group("presets").split(";"):
            if not item.strip():
                continue
            name, sep, value = item.partition("=")
            if not sep or not name.strip():
                raise BindingError(f"Malformed preset '{item}' in value map '{text}'")
            presets.append((name.strip(), value.strip()))
        if not presets:
            raise BindingError(f"Empty preset list in value map '{text}'")

    return ValueMapping(
        target=BindingTarget(tag=match.group("tag"), presets=tuple(presets)),
        attribute=match.group("attribute"),
    )


def format_value(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def coerce_value(template_field: TemplateField, raw: str) -> FieldValue:
    field_type = template_field.field_type
    if field_type is FieldType.BOOLEAN:
        return raw.strip().lower() == "true"
    if field_type is FieldType.INTEGER:
        return int(raw)
    if field_type is FieldType.THUMBNAIL:
        return None
    return raw


class AttributeBinder:
    """Reads (``load``) and writes (``write``) bound fields of one session."""

    def __init__(self, session: BindingSession) -> None:
        self.session = session
        self._bindings: list[FieldBinding] = []

    @property
    def bindings(self) -> list[FieldBinding]:
        return list(self._bindings)

    def register(self, template_field: TemplateField, occurrence: int = 0) -> FieldBinding | None:
        if not template_field.value_map:
            return None
        mapping = parse_value_map(template_field.value_map)
        if occurrence:
            mapping = replace(mapping, target=replace(mapping.target, occurrence=occurrence))
        if mapping.is_toggle and template_field.field_type is not FieldType.BOOLEAN:
            raise BindingError(
                f"Field '{template_field.name}' maps to an element, which needs a bool field"
            )
        binding = FieldBinding(field=template_field, mapping=mapping)
        self._bindings.append(binding)
        return binding

    def unregister(self, template_field: TemplateField) -> None:
        self._bindings = [item for item in self._bindings if item.field is not template_field]

    def binding_for(self, template_field: TemplateField) -> FieldBinding | None:
        for binding in self._bindings:
            if binding.field is template_field:
                return binding
        return None

    def is_present(self, target: BindingTarget) -> bool:
        node = self.session.bound(target.key)
        tree = self.session.tree
        return node is not None and tree is not None and tree.contains(node)

    def resolve(
        self,
        target: BindingTarget,
        attribute: str | None = None,
        create: bool = True,
    ) -> etree._Element | None:
        """Find the element ``target`` refers to, creating it if allowed.

        The first element (document order) that has ``attribute`` wins, unless
        another element is already bound for this target. Without such an
        element the bound one is kept, then the first candidate is taken, and
        only then is a new element created. Targets selected by presets are
        never created here; toggles own their lifecycle.

        Copy ``n`` of a repeated field takes the ``n``-th matching element.
        Elements bound to another copy of the same field are never shared.
        """
        tree = self._tree()
        key = target.key
        bound = self.session.bound(key)
        if bound is not None and not tree.contains(bound):
            self.session.unbind(key)
            bound = None

        matching = [node for node in tree.nodes_by_tag(target.tag) if target.matches(node)]
        claimed = self._claimed(target)

        def is_free(node: etree._Element) -> bool:
            return not any(node is other for other in claimed)

        if target.occurrence:
            if bound is not None:
                return bound
            if target.occurrence < len(matching) and is_free(matching[target.occurrence]):
                return self.session.bind(key, matching[target.occurrence])
            if not create or target.presets:
                return None
            # Copy n lives at position n, so earlier positions get empty elements.
            while len(matching) < target.occurrence:
                matching.append(self._create(tree, target.tag, {}))
            return self.session.bind(key, self._create(tree, target.tag, {}))

        candidates = [node for node in matching if is_free(node)]
        for node in candidates:
            if attribute is not None and not tree.has_attribute(node, attribute):
                continue
            if bound is None or node is bound:
                return self.session.bind(key, node)
        if bound is not None:
            return bound
        if candidates:
            return self.session.bind(key, candidates[0])

        if not create or target.presets:
            return None
        return self.session.bind(key, self._create(tree, target.tag, {}))

    def _claimed(self, target: BindingTarget) -> list[etree._Element]:
        """Nodes held by the other occurrences of a repeated target."""
        base_key = replace(target, occurrence=0).key
        return [
            node
            for key, node in self.session.bound_nodes.items()
            if key != target.key and (key == base_key or key.startswith(base_key + "#"))
        ]

    def load(self) -> dict[str, FieldValue]:
        """Push document values into every bound control.

        Attributes missing from the document reset their field to its default,
        and so does every field when no parsed document is open.
        """
        values: dict[str, FieldValue] = {}
        has_tree = self.session.tree is not None

        with self.session.guard():
            for binding in self._bindings:
                if has_tree:
                    value = self._read(binding)
                    values[binding.label] = value
                else:
                    value = binding.field.default_value
                control = binding.field.control
                if control is None or binding.field.field_type is FieldType.THUMBNAIL:
                    continue
                try:
                    control.set_value(value)
                except ValueError as exc:
                    logger.warning("Cannot show value for '%s': %s", binding.label, exc)
                    control.set_value(binding.field.default_value)
        return values

    def write(self, template_field: TemplateField, value: object) -> bool:
        """Store an edited value; returns False when nothing was written."""
        if self.session.loading:
            return False
        binding = self.binding_for(template_field)
        if binding is None:
            return False

        mapping = binding.mapping
        if mapping.is_toggle:
            self.set_present(mapping.target, bool(value))
            return True

        node = self.resolve(mapping.target, mapping.attribute, create=True)
        if node is None:
            raise BindingError(
                f"No <{mapping.target.tag}> element for '{binding.label}'; enable it first"
            )
        self._tree().set_attribute(node, mapping.attribute, format_value(value))
        logger.debug("%s.%s = %r", mapping.target.key, mapping.attribute, value)
        return True

    def set_present(self, target: BindingTarget, enabled: bool) -> etree._Element | None:
        """Create or remove the element a toggle stands for."""
        tree = self._tree()
        key = target.key
        node = self.resolve(target, target.identifying_attribute, create=False)

        if enabled:
            if node is not None:
                return node
            return self.session.bind(key, self._create(tree, target.tag, dict(target.presets)))

        if node is None:
            return None
        try:
            tree.remove_node(node)
        except ValueError as exc:
            raise BindingError(f"Failed to remove <{target.tag}>: {exc}") from exc
        self.session.unbind(key)
        logger.info("Removed %s", key)
        return None

    def _read(self, binding: FieldBinding) -> FieldValue:
        mapping = binding.mapping
        default = binding.field.default_value
        if mapping.is_toggle:
            node = self.resolve(
                mapping.target, mapping.target.identifying_attribute, create=False
            )
            return node is not None

        node = self.resolve(mapping.target, mapping.attribute, create=False)
        raw = None if node is None else node.get(mapping.attribute)
        if raw is None:
            return default
        try:
            return coerce_value(binding.field, raw)
        except ValueError:
            logger.warning("Ignoring '%s' for '%s': not a number", raw, binding.label)
            return default

    def _tree(self) -> AttributedTree:
        if self.session.tree is None:
            raise BindingError("No parsed document is open")
        return self.session.tree

    @staticmethod
    def _create(tree: AttributedTree, tag: str, attributes: dict[str, str]) -> etree._Element:
        try:
            node = tree.create_node(tag, attributes)
        except (ValueError, etree.LxmlError) as exc:
            raise BindingError(f"Failed to create <{tag}>: {exc}") from exc
        logger.info("Created <%s ID=%s>", tag, node.get("ID"))
        return node
