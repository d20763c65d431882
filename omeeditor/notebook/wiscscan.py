"""Emulation of the WiscScan login and experiment setup screens.

The screens mirror what WiscScan records in OME-XML so that its users can
review and correct a document without the full metadata tree. Fields that
WiscScan shows but does not record are displayed disabled.
"""

from __future__ import annotations

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QFont
from PySide6.QtWidgets import QGroupBox, QLabel, QScrollArea, QTabWidget, QVBoxLayout, QWidget

from omeeditor.model.template import Template, TemplateField, load_template
from omeeditor.state.binder import AttributeBinder
from omeeditor.viewer.form_pane import FieldForm

EXPERIMENT_TYPES = (
    "Time-lapse",
    "4-D+",
    "PGI/Documentation",
    "Photoablation",
    "Fluorescense-Lifetime",
    "Spectral-Imaging",
    "FP",
    "FRET",
    "Screen",
    "Immunocytochemistry Immunofluorescence",
    "FISH",
    "Electrophysiology",
    "Ion-Imaging",
    "Colocalization",
    "FRAP",
    "Photoactivation",
    "Uncaging",
    "Optical-Trapping",
    "Other",
)
FILTER_CHOICES = ("None", "1 TFI 650SP")

_EXPERIMENT_VALUES = ", ".join(EXPERIMENT_TYPES)
_FILTER_VALUES = ", ".join(FILTER_CHOICES)

WISCSCAN_TEMPLATE = f"""
# Login screen
field {{ name "First Name" type "var" valueMap "Experimenter.FirstName" grid "1,1" }}
field {{ name "Last Name" type "var" valueMap "Experimenter.LastName" grid "2,1" }}
field {{ name "OME Name (not supported)" type "var" grid "3,1" }}
field {{ name "Password (not supported)" type "var" grid "4,1" }}
field {{ name "Email" type "var" valueMap "Experimenter.Email" grid "5,1" }}
field {{ name "Group (not supported)" type "enum" values "None" grid "6,1" }}

# Experiment setup information
field {{
  name "Experiment Type"
  type "enum"
  values "{_EXPERIMENT_VALUES}"
  default "Other"
  valueMap "Experiment.Type"
  grid "1,1"
}}
field {{ name "Project Name" type "var" valueMap "Project.Name" grid "2,1" }}
field {{
  name "Description"
  type "var"
  valueMap "Experiment.Description"
  grid "3,1"
  span "30,4"
}}
field {{ name "Temperature" type "var" grid "7,1" }}
field {{ name "Pockel Cell" type "var" default "" grid "8,1" }}
field {{ name "Tap Settings" type "var" grid "9,1" }}

# Filter
field {{ name "Wheel" type "enum" values "{_FILTER_VALUES}" default "None" grid "1,1" }}
field {{ name "Holder" type "enum" values "{_FILTER_VALUES}" default "None" grid "2,1" }}

# Laser
field {{
  name "Ti-Sapphire"
  type "bool"
  valueMap "Laser[Medium=Ti-Sapphire;Type=Solid State]"
  grid "1,1"
}}
field {{ name "Ti-Sapphire Setting" type "var" grid "1,2" }}

# Detector
field {{
  name "Photodiode Bio-Rad 1024TLD"
  type "bool"
  valueMap "Detector[Type=Photodiode;Manufacturer=Bio-Rad;Model=1024LD]"
  grid "1,1"
}}
field {{
  name "PMT Hamamatsu H7422"
  type "bool"
  valueMap "Detector[Type=PMT;Manufacturer=Hamamatsu;Model=H7422]"
  grid "2,1"
}}
field {{ name "PMT Gain" type "var" valueMap "Detector[Type=PMT].Gain" grid "2,2" }}
"""

LOGIN_FIELDS = (
    "First Name",
    "Last Name",
    "OME Name (not supported)",
    "Password (not supported)",
    "Email",
    "Group (not supported)",
)
SECTIONS = {
    "Experiment Information": (
        "Experiment Type",
        "Project Name",
        "Description",
        "Temperature",
        "Pockel Cell",
        "Tap Settings",
    ),
    "Filter": ("Wheel", "Holder"),
    "Laser": ("Ti-Sapphire", "Ti-Sapphire Setting"),
    "Detector": ("Photodiode Bio-Rad 1024TLD", "PMT Hamamatsu H7422", "PMT Gain"),
}
UNSUPPORTED_FIELDS = frozenset(
    {
        "OME Name (not supported)",
        "Password (not supported)",
        "Group (not supported)",
        "Temperature",
        "Pockel Cell",
        "Tap Settings",
        "Wheel",
        "Holder",
        "Ti-Sapphire Setting",
    }
)


class WiscScanPane(QTabWidget):
    document_edited = Signal()
    edit_failed = Signal(str)

    def __init__(self, binder: AttributeBinder, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._binder = binder
        self._template: Template = load_template(WISCSCAN_TEMPLATE)
        self._forms: dict[str, FieldForm] = {}

        self.addTab(self._build_login_tab(), "WiscScan Login")
        self.setTabToolTip(0, "Emulates the login screen of WiscScan.")
        self.addTab(self._build_experiment_tab(), "Experiment Setup Information")
        self.setTabToolTip(1, "Emulates the Experiment Setup Information screen of WiscScan.")

    @property
    def forms(self) -> dict[str, FieldForm]:
        return dict(self._forms)

    def field(self, name: str) -> TemplateField | None:
        return self._template.get(name)

    def set_editable(self, editable: bool) -> None:
        for form in self._forms.values():
            form.set_editable(editable)

    def refresh_state(self) -> None:
        for form in self._forms.values():
            form.refresh_state()

    def _build_login_tab(self) -> QWidget:
        welcome = QLabel("Welcome To WiscScan")
        welcome.setAlignment(Qt.AlignmentFlag.AlignCenter)
        welcome.setFont(QFont("Serif", 48))

        form = self._make_form("Login", LOGIN_FIELDS)
        box = QGroupBox()
        QVBoxLayout(box).addWidget(form)
        box.setMaximumWidth(420)

        page = QWidget()
        layout = QVBoxLayout(page)
        layout.addWidget(welcome)
        layout.addWidget(box, alignment=Qt.AlignmentFlag.AlignHCenter)
        layout.addStretch(1)
        return page

    def _build_experiment_tab(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)
        for title, names in SECTIONS.items():
            box = QGroupBox(title)
            QVBoxLayout(box).addWidget(self._make_form(title, names))
            layout.addWidget(box)
        layout.addStretch(1)

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(page)
        return scroll

    def _make_form(self, title: str, names: tuple[str, ...]) -> FieldForm:
        fields = [item for item in self._template.fields if item.name in names]
        form = FieldForm(fields, self._binder, disabled=UNSUPPORTED_FIELDS)
        form.document_edited.connect(self.document_edited.emit)
        form.edit_failed.connect(self.edit_failed.emit)
        self._forms[title] = form
        return form
