"""Qt form controls built for template fields."""

from __future__ import annotations

from typing import TYPE_CHECKING

from PySide6.QtCore import QObject, Qt, Signal
from PySide6.QtGui import QColor, QImage, QPixmap
from PySide6.QtWidgets import QCheckBox, QComboBox, QLabel, QPlainTextEdit, QSpinBox, QWidget

from omeeditor.model.template import FieldType, FieldValue

if TYPE_CHECKING:
    from omeeditor.model.template import TemplateField

INT_MAXIMUM = 2**31 - 1


class FieldControl(QObject):
    """A widget that shows one field value and reports edits."""

    value_changed = Signal(object)

    def __init__(self, widget: QWidget) -> None:
        super().__init__()
        self.widget = widget

    def value(self) -> object:
        raise NotImplementedError

    def set_value(self, value: object) -> None:
        raise NotImplementedError

    def set_editable(self, editable: bool) -> None:
        self.widget.setEnabled(editable)


class TextControl(FieldControl):
    def __init__(self, default: str, width: int = 1, height: int = 1) -> None:
        editor = QPlainTextEdit()
        editor.setPlainText(default)
        if (width, height) != (1, 1):
            metrics = editor.fontMetrics()
            editor.setFixedSize(
                metrics.averageCharWidth() * max(width, 8) + 12,
                metrics.lineSpacing() * height + 12,
            )
        else:
            editor.setMaximumHeight(editor.fontMetrics().lineSpacing() * 2 + 12)
        super().__init__(editor)
        self._editor = editor
        editor.textChanged.connect(lambda: self.value_changed.emit(self.value()))

    def value(self) -> str:
        return self._editor.toPlainText()

    def set_value(self, value: object) -> None:
        text = "" if value is None else str(value)
        if text != self._editor.toPlainText():
            self._editor.setPlainText(text)

    def set_editable(self, editable: bool) -> None:
        self._editor.setReadOnly(not editable)


class BoolControl(FieldControl):
    def __init__(self, default: bool) -> None:
        box = QCheckBox("")
        box.setChecked(default)
        super().__init__(box)
        self._box = box
        box.toggled.connect(self.value_changed.emit)

    def value(self) -> bool:
        return self._box.isChecked()

    def set_value(self, value: object) -> None:
        self._box.setChecked(bool(value))


class EnumControl(FieldControl):
    def __init__(self, values: tuple[str, ...], default: str | None) -> None:
        combo = QComboBox()
        combo.addItems(list(values))
        if default is not None:
            combo.setCurrentText(default)
        super().__init__(combo)
        self._combo = combo
        self._values = values
        combo.currentTextChanged.connect(self.value_changed.emit)

    def value(self) -> str:
        return self._combo.currentText()

    def set_value(self, value: object) -> None:
        if value is None:
            self._combo.setCurrentIndex(0)
            return
        if value not in self._values:
            raise ValueError(f"'{value}' is not one of {list(self._values)}")
        self._combo.setCurrentText(str(value))


class IntControl(FieldControl):
    def __init__(self, default: int) -> None:
        spin = QSpinBox()
        spin.setRange(0, INT_MAXIMUM)
        spin.setSingleStep(1)
        super().__init__(spin)
        self._spin = spin
        self.set_value(default)
        spin.valueChanged.connect(self.value_changed.emit)

    @property
    def minimum(self) -> int:
        return self._spin.minimum()

    @property
    def maximum(self) -> int:
        return self._spin.maximum()

    def value(self) -> int:
        return self._spin.value()

    def set_value(self, value: object) -> None:
        number = int(value)  # type: ignore[arg-type]
        if number < self.minimum or number > self.maximum:
            raise ValueError(f"{number} is outside {self.minimum}..{self.maximum}")
        self._spin.setValue(number)


class ThumbnailControl(FieldControl):
    def __init__(self) -> None:
        label = QLabel()
        label.setAlignment(Qt.AlignmentFlag.AlignLeft)
        super().__init__(label)
        self._label = label
        self._pixmap = _placeholder_pixmap()
        label.setPixmap(self._pixmap)

    def value(self) -> QPixmap:
        return self._pixmap

    def set_value(self, value: object) -> None:
        if value is None:
            pixmap = _placeholder_pixmap()
        elif isinstance(value, QImage):
            pixmap = QPixmap.fromImage(value)
        elif isinstance(value, QPixmap):
            pixmap = value
        else:
            raise ValueError(f"Cannot show {type(value).__name__} as a thumbnail")
        self._pixmap = pixmap
        self._label.setPixmap(pixmap)
        self.value_changed.emit(pixmap)


def _placeholder_pixmap() -> QPixmap:
    pixmap = QPixmap(1, 1)
    pixmap.fill(QColor("black"))
    return pixmap


def create_control(template_field: TemplateField) -> FieldControl:
    field_type = template_field.field_type
    default: FieldValue = template_field.default_value
    if field_type is FieldType.TEXT:
        return TextControl(str(default or ""), template_field.width, template_field.height)
    if field_type is FieldType.BOOLEAN:
        return BoolControl(bool(default))
    if field_type is FieldType.ENUM:
        return EnumControl(template_field.enum_values or (), default)  # type: ignore[arg-type]
    if field_type is FieldType.INTEGER:
        return IntControl(int(default or 0))
    return ThumbnailControl()
