"""Template-driven notes form for the open document."""

from __future__ import annotations

from PySide6.QtCore import Signal
from PySide6.QtWidgets import QLabel, QScrollArea, QVBoxLayout, QWidget

from omeeditor.model.template import Template, load_template
from omeeditor.state.binder import AttributeBinder
from omeeditor.viewer.form_pane import FieldForm

DEFAULT_TEMPLATE = """
# Default notes template. Each block describes one field.
field {
  name "First Name"
  type "var"
  valueMap "Experimenter.FirstName"
  grid "1,1"
}
field {
  name "Last Name"
  type "var"
  valueMap "Experimenter.LastName"
  grid "2,1"
}
field {
  name "Email"
  type "var"
  valueMap "Experimenter.Email"
  grid "3,1"
}
field {
  name "Project Name"
  type "var"
  valueMap "Project.Name"
  grid "4,1"
}
field {
  name "Experiment Type"
  type "enum"
  values "Time-lapse", "FRET", "FRAP", "FISH", "Spectral-Imaging", "Other"
  default "Other"
  valueMap "Experiment.Type"
  grid "5,1"
}
field {
  name "Description"
  type "var"
  valueMap "Experiment.Description"
  grid "6,1"
  span "40,4"
}
field {
  name "Dataset Name"
  type "var"
  valueMap "Dataset.Name"
  repeated "true"
  grid "10,1"
}
field {
  name "Slide Number"
  type "int"
  default "1"
  nameMap "CustomAttributes/Slide"
}
field {
  name "Stained"
  type "bool"
  default "false"
}
field {
  name "Preview"
  type "thumbnail"
}
"""


class NotesPane(QScrollArea):
    document_edited = Signal()
    edit_failed = Signal(str)

    def __init__(self, binder: AttributeBinder, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setWidgetResizable(True)
        self._binder = binder
        self._form: FieldForm | None = None
        self._template = Template()
        self._editable = True
        self._summary = QLabel()
        self.set_template(load_template(DEFAULT_TEMPLATE))

    @property
    def form(self) -> FieldForm | None:
        return self._form

    @property
    def template(self) -> Template:
        return self._template

    def set_template(self, template: Template) -> None:
        if self._form is not None:
            self._form.detach()

        self._template = template
        self._form = FieldForm(template.fields, self._binder)
        self._form.set_editable(self._editable)
        self._form.document_edited.connect(self.document_edited.emit)
        self._form.edit_failed.connect(self.edit_failed.emit)

        container = QWidget()
        layout = QVBoxLayout(container)
        self._summary = QLabel()
        if template.errors:
            self._summary.setText(
                f"Skipped {len(template.errors)} malformed field(s): "
                + "; ".join(str(error) for error in template.errors)
            )
            self._summary.setWordWrap(True)
            layout.addWidget(self._summary)
        layout.addWidget(self._form)
        layout.addStretch(1)
        self.setWidget(container)

    def set_editable(self, editable: bool) -> None:
        self._editable = editable
        if self._form is not None:
            self._form.set_editable(editable)

    def refresh_state(self) -> None:
        if self._form is not None:
            self._form.refresh_state()
