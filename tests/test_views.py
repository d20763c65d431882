import pytest
from PySide6.QtCore import Qt
from PySide6.QtWidgets import QAbstractItemView, QMessageBox, QPlainTextEdit, QStyleOptionViewItem

from omeeditor.config import EditorConfig
from omeeditor.model.template import load_template, parse_template_field
from omeeditor.notebook.notes import NotesPane
from omeeditor.notebook.wiscscan import SECTIONS, WiscScanPane
from omeeditor.ome.loader import document_from_text, load_document
from omeeditor.ome.tree import AttributedTree
from omeeditor.state.binder import AttributeBinder
from omeeditor.state.session import BindingSession
from omeeditor.ui.main_window import MainWindow
from omeeditor.viewer.form_pane import FieldForm
from omeeditor.viewer.metadata_pane import RAW_MESSAGE, MetadataPane

PMT = (
    '{name "PMT" type "bool" '
    'valueMap "Detector[Type=PMT;Manufacturer=Hamamatsu;Model=H7422]" grid "1,1"}'
)
PMT_GAIN = '{name "PMT Gain" type "var" valueMap "Detector[Type=PMT].Gain" grid "1,2"}'


def make_binder(xml: str) -> AttributeBinder:
    session = BindingSession()
    session.reset(AttributedTree.from_string(xml))
    return AttributeBinder(session)


@pytest.fixture
def no_dialogs(monkeypatch):
    shown = []
    monkeypatch.setattr(QMessageBox, "critical", lambda *args: shown.append(args))
    monkeypatch.setattr(QMessageBox, "information", lambda *args: shown.append(args))
    return shown


@pytest.fixture
def xml_file(tmp_path, sample_xml):
    path = tmp_path / "sample.ome.xml"
    path.write_text(sample_xml, encoding="utf-8")
    return path


def find_item(pane: MetadataPane, text: str):
    flags = Qt.MatchFlag.MatchExactly | Qt.MatchFlag.MatchRecursive
    return pane.tree.findItems(text, flags)[0]


def test_metadata_pane_shows_tree(qapp, sample_xml):
    pane = MetadataPane()
    pane.set_document(document_from_text(sample_xml))

    assert not pane.is_raw
    assert pane.tree.topLevelItemCount() == 1
    assert pane.tree.topLevelItem(0).text(0) == "OME"

    pane.tree.setCurrentItem(find_item(pane, "Image"))
    assert pane.attribute_table.rowCount() == 2
    assert pane.attribute_table.item(0, 0).text() == "ID"
    assert pane.attribute_table.item(1, 1).text() == "cells"

    pane.tree.setCurrentItem(find_item(pane, "Description"))
    assert pane.cdata.toPlainText() == "first plane"
    assert pane.attribute_table.rowCount() == 0


def test_metadata_pane_shows_raw_text(qapp, sample_xml):
    pane = MetadataPane()
    pane.set_document(document_from_text("<OME><Image>"))

    assert pane.is_raw
    assert pane.raw_text.toPlainText() == "<OME><Image>"
    assert RAW_MESSAGE == "Metadata parsing failed. Here is the raw info. Good luck!"

    pane.set_document(document_from_text(sample_xml))
    assert not pane.is_raw
    assert pane.raw_text.toPlainText() == ""


def test_metadata_pane_refresh_shows_edits(qapp, sample_xml):
    document = document_from_text(sample_xml)
    pane = MetadataPane()
    pane.set_document(document)

    document.tree.create_node("Project", {"Name": "Cells"})
    pane.refresh()

    pane.tree.setCurrentItem(find_item(pane, "Project"))
    assert pane.attribute_table.item(1, 1).text() == "Cells"


def test_metadata_pane_edits_attribute(qapp, sample_xml):
    document = document_from_text(sample_xml)
    pane = MetadataPane()
    pane.set_document(document)
    edits = []
    pane.document_edited.connect(lambda: edits.append(True))

    pane.tree.setCurrentItem(find_item(pane, "Image"))
    assert not pane.attribute_table.item(1, 0).flags() & Qt.ItemFlag.ItemIsEditable
    pane.attribute_table.item(1, 1).setText("nuclei")

    assert document.tree.nodes_by_tag("Image")[0].get("Name") == "nuclei"
    assert edits == [True]

    pane.attribute_table.item(1, 1).setText("nuclei")
    assert edits == [True]


def test_metadata_pane_long_values_get_text_area(qapp):
    note = "imaged after a forty minute incubation at room temperature"
    pane = MetadataPane()
    xml = f'<OME><Experiment ID="Experiment:0" Description="FRET" Note="{note}"/></OME>'
    pane.set_document(document_from_text(xml))
    pane.tree.setCurrentItem(find_item(pane, "Experiment"))
    table = pane.attribute_table
    default_height = table.verticalHeader().defaultSectionSize()

    def editor_for(row):
        index = table.model().index(row, 1)
        return pane.value_delegate.createEditor(table.viewport(), QStyleOptionViewItem(), index)

    assert not isinstance(editor_for(0), QPlainTextEdit)
    assert isinstance(editor_for(1), QPlainTextEdit)
    long_editor = editor_for(2)
    assert isinstance(long_editor, QPlainTextEdit)
    assert table.rowHeight(2) == default_height * 4

    pane.value_delegate.setEditorData(long_editor, table.model().index(2, 1))
    assert long_editor.toPlainText() == note
    long_editor.setPlainText("imaged at once")
    pane.value_delegate.setModelData(long_editor, table.model(), table.model().index(2, 1))
    assert table.item(2, 1).text() == "imaged at once"

    pane.value_delegate.destroyEditor(long_editor, table.model().index(2, 1))
    assert table.rowHeight(2) == default_height


def test_metadata_pane_read_only(qapp, sample_xml):
    pane = MetadataPane()
    pane.set_document(document_from_text(sample_xml))

    pane.set_editable(False)
    assert pane.attribute_table.editTriggers() == QAbstractItemView.EditTrigger.NoEditTriggers

    pane.set_editable(True)
    assert pane.attribute_table.editTriggers() & QAbstractItemView.EditTrigger.DoubleClicked


def test_form_writes_edits(qapp, sample_xml):
    binder = make_binder(sample_xml)
    first = parse_template_field('{name "First Name" type "var" valueMap "Experimenter.FirstName"}')
    form = FieldForm([first], binder)
    edits = []
    form.document_edited.connect(lambda: edits.append(True))
    binder.load()

    first.control.widget.setPlainText("Grace")

    experimenter = binder.session.tree.nodes_by_tag("Experimenter")[1]
    assert experimenter.get("FirstName") == "Grace"
    assert edits
    assert form.field("First Name") is first


def test_form_load_never_writes(qapp, sample_xml, monkeypatch):
    binder = make_binder(sample_xml)
    fields = load_template(
        """
field { name "First Name" type "var" valueMap "Experimenter.FirstName" }
field { name "Kind" type "enum" values "FRET, Other" default "Other" valueMap "Experiment.Type" }
field { name "PMT" type "bool" valueMap "Detector[Type=PMT;Model=H7422]" }
field { name "Gain" type "int" valueMap "Detector[Type=PMT].Gain" }
"""
    ).fields
    form = FieldForm(fields, binder)
    calls = []
    original_write = binder.write

    def counting_write(template_field, value):
        calls.append(template_field.name)
        return original_write(template_field, value)

    monkeypatch.setattr(binder, "write", counting_write)
    before = binder.session.tree.to_bytes()

    binder.load()

    assert calls == []
    assert binder.session.tree.to_bytes() == before
    assert fields[3].control.value() == 650
    assert fields[1].control.value() == "FRET"
    assert len(form.fields) == 4


def test_dependent_field_follows_toggle(qapp, bare_xml):
    binder = make_binder(bare_xml)
    toggle = parse_template_field(PMT)
    gain = parse_template_field(PMT_GAIN)
    form = FieldForm([toggle, gain], binder)
    failures = []
    form.edit_failed.connect(failures.append)
    binder.load()
    form.refresh_state()

    assert gain.control.widget.isReadOnly()
    gain.control.widget.setPlainText("600")
    assert failures
    assert binder.session.tree.nodes_by_tag("Detector") == []

    toggle.control.widget.setChecked(True)
    assert not gain.control.widget.isReadOnly()
    gain.control.widget.setPlainText("650")
    assert binder.session.tree.nodes_by_tag("Detector")[0].get("Gain") == "650"

    toggle.control.widget.setChecked(False)
    assert binder.session.tree.nodes_by_tag("Detector") == []
    assert gain.control.value() == ""
    assert gain.control.widget.isReadOnly()


def test_form_repetition(qapp):
    binder = make_binder('<OME><Dataset ID="Dataset:0" Name="a"/></OME>')
    dataset = parse_template_field(
        '{name "Dataset Name" type "var" valueMap "Dataset.Name" repeated "true" grid "1,1"}'
    )
    form = FieldForm([dataset], binder)

    duplicate = form.add_repetition(dataset)
    duplicate.control.widget.setPlainText("b")

    assert len(form.fields) == 2
    assert duplicate.row == 2
    assert [binding.label for binding in binder.bindings] == ["Dataset Name", "Dataset Name[1]"]
    names = [node.get("Name") for node in binder.session.tree.nodes_by_tag("Dataset")]
    assert names == ["a", "b"]


def test_form_read_only(qapp, sample_xml):
    binder = make_binder(sample_xml)
    first = parse_template_field('{name "First Name" type "var" valueMap "Experimenter.FirstName"}')
    stained = parse_template_field('{name "Stained" type "bool" valueMap "Image.Stained"}')
    form = FieldForm([first, stained], binder)

    form.set_editable(False)
    assert first.control.widget.isReadOnly()
    assert not stained.control.widget.isEnabled()

    form.set_editable(True)
    assert not first.control.widget.isReadOnly()
    assert stained.control.widget.isEnabled()


def test_notes_pane_reports_skipped_fields(qapp):
    binder = AttributeBinder(BindingSession())
    pane = NotesPane(binder)

    assert "Experiment Type" in pane.template.field_names()
    assert pane.template.errors == []

    template = load_template('field { name "A" type "var" }\nfield { name "B" type "vector" }')
    pane.set_template(template)

    assert pane.form.fields == template.fields
    assert len(pane.template.errors) == 1
    assert binder.bindings == []


def test_wiscscan_pane_layout(qapp):
    pane = WiscScanPane(AttributeBinder(BindingSession()))

    assert pane.count() == 2
    assert pane.tabText(0) == "WiscScan Login"
    assert pane.tabText(1) == "Experiment Setup Information"
    assert set(pane.forms) == {"Login", *SECTIONS}
    assert pane.field("Experiment Type").enum_values[-1] == "Other"
    assert pane.field("Experiment Type").default_value == "Other"
    assert len(pane.field("Experiment Type").enum_values) == 19


def test_wiscscan_pane_loads_document(qapp, sample_xml):
    binder = make_binder(sample_xml)
    pane = WiscScanPane(binder)
    edits = []
    pane.document_edited.connect(lambda: edits.append(True))

    binder.load()
    pane.refresh_state()

    assert pane.field("First Name").control.value() == "Ada"
    assert pane.field("Email").control.value() == "ada@example.org"
    assert pane.field("Experiment Type").control.value() == "FRET"
    assert pane.field("Ti-Sapphire").control.value() is True
    assert pane.field("PMT Hamamatsu H7422").control.value() is True
    assert pane.field("Photodiode Bio-Rad 1024TLD").control.value() is False
    assert pane.field("PMT Gain").control.value() == "650"
    assert pane.field("Temperature").control.widget.isReadOnly()
    assert not pane.field("Wheel").control.widget.isEnabled()
    assert not edits

    pane.field("Photodiode Bio-Rad 1024TLD").control.widget.setChecked(True)

    detectors = binder.session.tree.nodes_by_tag("Detector")
    assert [node.get("Type") for node in detectors] == ["PMT", "Photodiode"]
    assert edits


def test_main_window_open_edit_save(qapp, xml_file, tmp_path, no_dialogs):
    window = MainWindow()

    assert window.open_path(xml_file)
    notes = window.notes_pane.form
    assert notes.field("First Name").control.value() == "Ada"
    assert not window.metadata_pane.is_raw

    notes.field("Project Name").control.widget.setPlainText("Cells")
    assert window.document.modified
    assert window.windowTitle().endswith("*")

    output = tmp_path / "edited.ome.xml"
    assert window.save_to(output)
    assert not window.document.modified
    assert window.document.path == output
    saved = load_document(output)
    assert saved.tree.nodes_by_tag("Project")[0].get("Name") == "Cells"
    assert no_dialogs == []


def test_main_window_reloads_forms_on_tab_change(qapp, xml_file, no_dialogs):
    window = MainWindow()
    window.open_path(xml_file)

    window.wiscscan_pane.field("First Name").control.widget.setPlainText("Grace")
    window.tabs.setCurrentWidget(window.notes_pane)

    assert window.notes_pane.form.field("First Name").control.value() == "Grace"


def test_main_window_load_never_writes(qapp, xml_file, monkeypatch, no_dialogs):
    window = MainWindow()
    calls = []
    monkeypatch.setattr(window.binder, "write", lambda *args: calls.append(args))

    window.open_path(xml_file)
    window.tabs.setCurrentWidget(window.wiscscan_pane)

    assert calls == []
    assert not window.document.modified


def test_main_window_rejects_unknown_file(qapp, tmp_path, no_dialogs):
    path = tmp_path / "notes.txt"
    path.write_text("hello world", encoding="utf-8")
    window = MainWindow()

    assert not window.open_path(path)
    assert window.document is None
    assert len(no_dialogs) == 1


def test_main_window_raw_document(qapp, tmp_path, no_dialogs):
    path = tmp_path / "broken.xml"
    path.write_text("<OME><Image></OME>", encoding="utf-8")
    window = MainWindow()

    assert window.open_path(path)
    assert window.metadata_pane.is_raw
    assert window.notes_pane.form.field("First Name").control.widget.isReadOnly()
    assert not window.save_to(tmp_path / "out.xml")
    assert len(no_dialogs) == 1


def test_main_window_new_document(qapp, no_dialogs):
    window = MainWindow()
    window.new_document()

    window.notes_pane.form.field("Project Name").control.widget.setPlainText("Cells")

    projects = window.document.tree.nodes_by_tag("Project")
    assert [node.get("Name") for node in projects] == ["Cells"]


def test_main_window_template_and_read_only(qapp, tmp_path, xml_file, no_dialogs):
    template = tmp_path / "notes.template"
    template.write_text(
        'field { name "Image Name" type "var" valueMap "Image.Name" }', encoding="utf-8"
    )
    window = MainWindow(EditorConfig(template_path=template, editable=False))
    window.open_path(xml_file)

    field = window.notes_pane.form.field("Image Name")
    assert field.control.value() == "cells"
    assert field.control.widget.isReadOnly()

    window.set_editable(True)
    assert not field.control.widget.isReadOnly()
    assert not window.load_template(tmp_path / "missing.template")
    assert len(no_dialogs) == 1


def test_main_window_metadata_edit_marks_modified(qapp, xml_file, no_dialogs):
    window = MainWindow()
    window.open_path(xml_file)

    window.metadata_pane.tree.setCurrentItem(find_item(window.metadata_pane, "Image"))
    window.metadata_pane.attribute_table.item(1, 1).setText("nuclei")

    assert window.document.modified
    assert window.windowTitle().endswith("*")
    window.tabs.setCurrentWidget(window.notes_pane)
    window.tabs.setCurrentWidget(window.metadata_pane)
    assert window.document.tree.nodes_by_tag("Image")[0].get("Name") == "nuclei"


def test_main_window_raw_document_clears_forms(qapp, xml_file, tmp_path, no_dialogs):
    broken = tmp_path / "broken.xml"
    broken.write_text("<OME><Image></OME>", encoding="utf-8")
    window = MainWindow()
    window.open_path(xml_file)
    assert window.notes_pane.form.field("First Name").control.value() == "Ada"

    window.open_path(broken)

    assert window.notes_pane.form.field("First Name").control.value() == ""
    assert window.wiscscan_pane.field("First Name").control.value() == ""
