"""Grid form of template field controls bound to the open document."""

from __future__ import annotations

from PySide6.QtCore import Signal
from PySide6.QtWidgets import QGridLayout, QLabel, QPushButton, QWidget

from omeeditor.logs import get_logger
from omeeditor.model.template import TemplateField
from omeeditor.state.binder import AttributeBinder, BindingError

logger = get_logger(__name__)


class FieldForm(QWidget):
    """Lays out template fields on a grid and forwards edits to the binder.

    Each field takes a label cell and a control cell, so template column ``c``
    occupies grid columns ``2c - 2`` and ``2c - 1``.
    """

    document_edited = Signal()
    edit_failed = Signal(str)

    def __init__(
        self,
        fields: list[TemplateField],
        binder: AttributeBinder,
        disabled: set[str] | frozenset[str] = frozenset(),
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self._binder = binder
        self._disabled = set(disabled)
        self._fields: list[TemplateField] = []
        self._copies: dict[str, list[TemplateField]] = {}
        self._editable = True

        self._layout = QGridLayout(self)
        self._layout.setColumnStretch(1, 1)
        self._next_row = max((item.row for item in fields), default=0) + 1

        for template_field in fields:
            self._add_field(template_field, template_field.row)

    @property
    def fields(self) -> list[TemplateField]:
        return list(self._fields)

    def field(self, name: str) -> TemplateField | None:
        for template_field in self._fields:
            if template_field.name == name:
                return template_field
        return None

    def set_editable(self, editable: bool) -> None:
        self._editable = editable
        self.refresh_state()

    def refresh_state(self) -> None:
        """Enable controls whose document element exists and is editable."""
        for template_field in self._fields:
            if template_field.control is None:
                continue
            template_field.control.set_editable(self._is_enabled(template_field))

    def detach(self) -> None:
        for template_field in self._fields:
            self._binder.unregister(template_field)

    def _is_enabled(self, template_field: TemplateField) -> bool:
        if not self._editable or template_field.name in self._disabled:
            return False
        if self._binder.session.tree is None:
            return False
        binding = self._binder.binding_for(template_field)
        if binding is None or binding.mapping.is_toggle:
            return True
        target = binding.mapping.target
        return not target.presets or self._binder.is_present(target)

    def _add_field(self, template_field: TemplateField, row: int, occurrence: int = 0) -> None:
        control = template_field.control or template_field.build_control()
        try:
            self._binder.register(template_field, occurrence=occurrence)
        except BindingError as exc:
            logger.warning("Field '%s' stays unbound: %s", template_field.name, exc)
            self._disabled.add(template_field.name)

        column = (template_field.column - 1) * 2
        label = QLabel(template_field.name)
        if template_field.name_map:
            label.setToolTip(template_field.name_map)
        self._layout.addWidget(label, row, column)
        self._layout.addWidget(
            control.widget,
            row,
            column + 1,
            template_field.height,
            template_field.width * 2 - 1,
        )
        self._next_row = max(self._next_row, row + template_field.height)

        if template_field.repeated and occurrence == 0:
            add_button = QPushButton("Add")
            add_button.setToolTip(f"Add another {template_field.name}")
            add_button.clicked.connect(lambda: self.add_repetition(template_field))
            self._layout.addWidget(add_button, row, column + template_field.width * 2)

        control.value_changed.connect(
            lambda value, item=template_field: self._on_value_changed(item, value)
        )
        self._fields.append(template_field)
        control.set_editable(self._is_enabled(template_field))

    def add_repetition(self, template_field: TemplateField) -> TemplateField:
        copies = self._copies.setdefault(template_field.name, [])
        duplicate = template_field.copy()
        duplicate.row = self._next_row
        copies.append(duplicate)
        self._add_field(duplicate, duplicate.row, occurrence=len(copies))
        return duplicate

    def _on_value_changed(self, template_field: TemplateField, value: object) -> None:
        if self._binder.session.loading:
            return
        try:
            written = self._binder.write(template_field, value)
        except BindingError as exc:
            logger.warning("Edit of '%s' not stored: %s", template_field.name, exc)
            self.edit_failed.emit(str(exc))
            return
        if not written:
            return

        binding = self._binder.binding_for(template_field)
        if binding is not None and binding.mapping.is_toggle and not value:
            self._clear_dependents(binding.mapping.target.key)
        self.refresh_state()
        self.document_edited.emit()

    def _clear_dependents(self, target_key: str) -> None:
        with self._binder.session.guard():
            for binding in self._binder.bindings:
                if binding.mapping.is_toggle or binding.mapping.target.key != target_key:
                    continue
                control = binding.field.control
                if control is not None:
                    control.set_value(binding.field.default_value)
