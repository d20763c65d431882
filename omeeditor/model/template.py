"""Template field definitions parsed from brace-delimited template text."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
import re
from typing import TYPE_CHECKING, Union

from omeeditor.logs import get_logger

if TYPE_CHECKING:
    from omeeditor.model.controls import FieldControl

logger = get_logger(__name__)

FieldValue = Union[str, bool, int, None]

_TOKEN_RE = re.compile(r'"([^"]*)"|(,)|([^\s",]+)')

KNOWN_KEYS = frozenset(
    {"name", "nameMap", "type", "valueMap", "repeated", "grid", "span", "values", "default"}
)


class MalformedTemplateError(ValueError):
    """Raised when a template field definition cannot be parsed."""


class FieldType(str, Enum):
    TEXT = "var"
    BOOLEAN = "bool"
    ENUM = "enum"
    INTEGER = "int"
    THUMBNAIL = "thumbnail"


@dataclass(slots=True)
class TemplateField:
    name: str
    field_type: FieldType
    default_value: FieldValue = None
    enum_values: tuple[str, ...] | None = None
    name_map: str | None = None
    value_map: str | None = None
    row: int = -1
    column: int = 1
    width: int = 1
    height: int = 1
    repeated: bool = False
    control: FieldControl | None = field(default=None, compare=False, repr=False)

    @property
    def grid(self) -> tuple[int, int]:
        return self.row, self.column

    @property
    def span(self) -> tuple[int, int]:
        return self.width, self.height

    def copy(self, build_control: bool = True) -> TemplateField:
        """Return an independent descriptor with its own control."""
        # tuple(t) returns t itself; go through a list for fresh storage.
        duplicate = TemplateField(
            name=self.name,
            field_type=self.field_type,
            default_value=self.default_value,
            enum_values=tuple(list(self.enum_values)) if self.enum_values is not None else None,
            name_map=self.name_map,
            value_map=self.value_map,
            row=self.row,
            column=self.column,
            width=self.width,
            height=self.height,
            repeated=self.repeated,
        )
        if build_control:
            duplicate.build_control()
        return duplicate

    def build_control(self) -> FieldControl:
        from omeeditor.model.controls import create_control

        self.control = create_control(self)
        return self.control


@dataclass(slots=True)
class Template:
    fields: list[TemplateField] = field(default_factory=list)
    errors: list[MalformedTemplateError] = field(default_factory=list)

    def field_names(self) -> list[str]:
        return [item.name for item in self.fields]

    def get(self, name: str) -> TemplateField | None:
        for item in self.fields:
            if item.name == name:
                return item
        return None


def parse_template_field(definition: str, build_control: bool = True) -> TemplateField:
    start = definition.find("{")
    end = definition.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise MalformedTemplateError("Template definition has no {...} block")

    entries = _tokenize(definition[start + 1 : end])
    template_field = _resolve(entries)
    if build_control:
        template_field.build_control()
    return template_field


def _tokenize(body: str) -> dict[str, list[str]]:
    entries: dict[str, list[str]] = {}
    key: str | None = None
    for match in _TOKEN_RE.finditer(body):
        quoted, comma, word = match.groups()
        if word is not None:
            if key is not None and not entries[key]:
                raise MalformedTemplateError(f"Key '{key}' has no quoted value")
            key = word
            # Later declarations of the same key replace earlier ones.
            entries[key] = []
        elif quoted is not None:
            if key is None:
                raise MalformedTemplateError(f'Value "{quoted}" has no key')
            entries[key].append(quoted)
        elif comma is not None and key is None:
            raise MalformedTemplateError("Unexpected ',' before any key")
    if key is not None and not entries[key]:
        raise MalformedTemplateError(f"Key '{key}' has no quoted value")

    for unknown in sorted(set(entries) - KNOWN_KEYS):
        logger.debug("Ignoring unknown template key '%s'", unknown)
    return entries


def _resolve(entries: dict[str, list[str]]) -> TemplateField:
    def scalar(key: str) -> str | None:
        values = entries.get(key)
        return values[0] if values else None

    name = scalar("name")
    if not name:
        raise MalformedTemplateError("Template field has no name")

    type_name = scalar("type")
    if type_name is None:
        raise MalformedTemplateError(f"Field '{name}' has no type")
    try:
        field_type = FieldType(type_name)
    except ValueError as exc:
        raise MalformedTemplateError(f"Field '{name}' has unknown type '{type_name}'") from exc

    enum_values: tuple[str, ...] | None = None
    if field_type is FieldType.ENUM:
        if "values" not in entries:
            raise MalformedTemplateError(f"Enum field '{name}' declares no values")
        enum_values = tuple(
            part.strip()
            for chunk in entries["values"]
            for part in chunk.split(",")
            if part.strip()
        )
        if not enum_values:
            raise MalformedTemplateError(f"Enum field '{name}' declares no values")

    template_field = TemplateField(
        name=name,
        field_type=field_type,
        default_value=_coerce_default(name, field_type, scalar("default"), enum_values),
        enum_values=enum_values,
        name_map=scalar("nameMap"),
        value_map=scalar("valueMap"),
        repeated=_parse_bool(scalar("repeated") or "false"),
    )

    grid = scalar("grid")
    if grid is not None:
        template_field.row, template_field.column = _parse_pair(name, "grid", grid)
    span = scalar("span")
    if span is not None:
        width, height = _parse_pair(name, "span", span)
        if width < 1 or height < 1:
            raise MalformedTemplateError(f"Field '{name}' has a non-positive span '{span}'")
        template_field.width, template_field.height = width, height
    return template_field


def _coerce_default(
    name: str,
    field_type: FieldType,
    raw: str | None,
    enum_values: tuple[str, ...] | None,
) -> FieldValue:
    if field_type is FieldType.TEXT:
        return raw if raw is not None else ""
    if field_type is FieldType.BOOLEAN:
        return _parse_bool(raw) if raw is not None else False
    if field_type is FieldType.INTEGER:
        if raw is None:
            return 0
        try:
            number = int(raw)
        except ValueError as exc:
            raise MalformedTemplateError(
                f"Field '{name}' has a non-numeric default '{raw}'"
            ) from exc
        if number < 0:
            raise MalformedTemplateError(f"Field '{name}' has a negative default '{raw}'")
        return number
    if field_type is FieldType.ENUM:
        if raw is None:
            return None
        if enum_values is None or raw not in enum_values:
            raise MalformedTemplateError(f"Field '{name}' default '{raw}' is not one of its values")
        return raw
    return None


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() == "true"


def _parse_pair(name: str, key: str, raw: str) -> tuple[int, int]:
    parts = raw.split(",")
    if len(parts) != 2:
        raise MalformedTemplateError(f"Field '{name}' has malformed {key} '{raw}'")
    try:
        return int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise MalformedTemplateError(f"Field '{name}' has malformed {key} '{raw}'") from exc


def split_definitions(text: str) -> list[str]:
    """Split template text into top-level ``{...}`` blocks.

    Lines starting with ``#`` are comments. Text between blocks is ignored, so
    a block may be preceded by a label such as ``field``.
    """
    lines = [line for line in text.splitlines() if not line.lstrip().startswith("#")]
    source = "\n".join(lines)

    blocks: list[str] = []
    depth = 0
    start = 0
    in_quotes = False
    for index, char in enumerate(source):
        if char == '"':
            in_quotes = not in_quotes
        elif in_quotes:
            continue
        elif char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}":
            depth -= 1
            if depth < 0:
                raise MalformedTemplateError(f"Unbalanced '}}' at offset {index}")
            if depth == 0:
                blocks.append(source[start : index + 1])
    if depth != 0 or in_quotes:
        raise MalformedTemplateError("Template text ends inside a field block")
    return blocks


def load_template(text: str, build_controls: bool = True) -> Template:
    template = Template()
    seen: set[str] = set()
    for block in split_definitions(text):
        try:
            template_field = parse_template_field(block, build_control=False)
            if template_field.name in seen:
                raise MalformedTemplateError(f"Duplicate field name '{template_field.name}'")
        except MalformedTemplateError as exc:
            logger.warning("Skipping template field: %s", exc)
            template.errors.append(exc)
            continue
        seen.add(template_field.name)
        template.fields.append(template_field)

    next_row = max((item.row for item in template.fields), default=0) + 1
    next_row = max(next_row, 1)
    for template_field in template.fields:
        if template_field.row < 0:
            template_field.row = next_row
            next_row += 1
        if build_controls:
            template_field.build_control()
    return template


def load_template_file(path: str | Path, build_controls: bool = True) -> Template:
    template_path = Path(path)
    try:
        text = template_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise MalformedTemplateError(f"Cannot read template file: {template_path}") from exc
    logger.info("Loading template %s", template_path)
    return load_template(text, build_controls=build_controls)
