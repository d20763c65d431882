"""Main application window for viewing and editing OME metadata."""

from __future__ import annotations

from pathlib import Path

from PySide6.QtGui import QAction, QKeySequence
from PySide6.QtWidgets import QFileDialog, QMainWindow, QMessageBox, QTabWidget, QToolBar

from omeeditor.config import EditorConfig
from omeeditor.logs import get_logger
from omeeditor.model.document import OmeDocument, SourceKind
from omeeditor.model.template import MalformedTemplateError, load_template_file
from omeeditor.notebook.notes import NotesPane
from omeeditor.notebook.wiscscan import WiscScanPane
from omeeditor.ome.loader import OmeLoadError, load_document, new_document
from omeeditor.ome.writer import OmeWriteError, write_document
from omeeditor.state.binder import AttributeBinder
from omeeditor.state.session import BindingSession
from omeeditor.viewer.metadata_pane import MetadataPane

logger = get_logger(__name__)

OPEN_FILTER = "OME files (*.ome.tif *.ome.tiff *.tif *.tiff *.ome *.xml *.ome.xml);;All files (*)"
XML_FILTER = "OME-XML (*.ome.xml *.xml *.ome)"
TIFF_FILTER = "OME-TIFF (*.ome.tif *.ome.tiff *.tif *.tiff)"


class MainWindow(QMainWindow):
    def __init__(self, config: EditorConfig | None = None) -> None:
        super().__init__()
        self._config = config or EditorConfig()
        self.setWindowTitle("OME Metadata Editor")
        self.resize(self._config.window_width, self._config.window_height)

        self._document: OmeDocument | None = None
        self._session = BindingSession()
        self._binder = AttributeBinder(self._session)
        self._metadata_stale = False

        self.metadata_pane = MetadataPane()
        self.metadata_pane.document_edited.connect(self._on_metadata_edited)
        self.notes_pane = NotesPane(self._binder)
        self.wiscscan_pane = WiscScanPane(self._binder)
        for pane in (self.notes_pane, self.wiscscan_pane):
            pane.document_edited.connect(self._on_document_edited)
            pane.edit_failed.connect(self._on_edit_failed)

        if self._config.template_path is not None:
            self.load_template(self._config.template_path)

        self.tabs = QTabWidget()
        self.tabs.addTab(self.metadata_pane, "Metadata")
        self.tabs.addTab(self.notes_pane, "Notes")
        self.tabs.addTab(self.wiscscan_pane, "WiscScan")
        self.tabs.currentChanged.connect(self._on_tab_changed)
        self.setCentralWidget(self.tabs)

        self._build_toolbar()
        self.set_editable(self._config.editable)
        self.statusBar().showMessage("Ready")

    @property
    def document(self) -> OmeDocument | None:
        return self._document

    @property
    def binder(self) -> AttributeBinder:
        return self._binder

    def _build_toolbar(self) -> None:
        toolbar = QToolBar("Main Toolbar")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        new_action = QAction("New", self)
        new_action.setShortcut(QKeySequence.StandardKey.New)
        new_action.triggered.connect(self.new_document)
        toolbar.addAction(new_action)

        open_action = QAction("Open", self)
        open_action.setShortcut(QKeySequence.StandardKey.Open)
        open_action.triggered.connect(self.open_file)
        toolbar.addAction(open_action)

        save_action = QAction("Save As", self)
        save_action.setShortcut(QKeySequence.StandardKey.SaveAs)
        save_action.triggered.connect(self.save_file)
        toolbar.addAction(save_action)

        toolbar.addSeparator()

        template_action = QAction("Load Template", self)
        template_action.triggered.connect(self.open_template)
        toolbar.addAction(template_action)

        self._editable_action = QAction("Editable", self)
        self._editable_action.setCheckable(True)
        self._editable_action.setChecked(self._config.editable)
        self._editable_action.toggled.connect(self.set_editable)
        toolbar.addAction(self._editable_action)

    def open_file(self) -> None:
        start = Path.home()
        if self._document is not None and self._document.path is not None:
            start = self._document.path.parent
        file_path, _ = QFileDialog.getOpenFileName(self, "Open OME File", str(start), OPEN_FILTER)
        if file_path:
            self.open_path(file_path)

    def open_path(self, path: str | Path) -> bool:
        try:
            document = load_document(path)
        except OmeLoadError as exc:
            QMessageBox.critical(self, "Open Failed", str(exc))
            return False

        self.set_document(document)
        if document.is_raw:
            self.statusBar().showMessage(f"Loaded {path} without a parsed metadata tree")
        else:
            self.statusBar().showMessage(f"Loaded: {path}")
        return True

    def new_document(self) -> None:
        self.set_document(new_document())
        self.statusBar().showMessage("New document")

    def set_document(self, document: OmeDocument) -> None:
        self._document = document
        self._session.reset(document.tree)
        self.metadata_pane.set_document(document)
        self._metadata_stale = False
        self._reload_forms()
        self.setWindowTitle(f"OME Metadata Editor - {document.display_name}")

    def save_file(self) -> None:
        if self._document is None:
            QMessageBox.information(self, "No Document", "Open an OME file first.")
            return
        if self._document.is_raw:
            QMessageBox.information(
                self, "Cannot Save", "The metadata could not be parsed, so it cannot be saved."
            )
            return

        if self._document.path is not None:
            suggested = self._document.path
        else:
            suggested = Path.home() / "untitled.ome.xml"
        file_filter = TIFF_FILTER if self._document.kind is SourceKind.TIFF else XML_FILTER
        output_path, _ = QFileDialog.getSaveFileName(self, "Save As", str(suggested), file_filter)
        if not output_path:
            return
        self.save_to(output_path)

    def save_to(self, output_path: str | Path) -> bool:
        if self._document is None:
            return False
        try:
            write_document(self._document, output_path)
        except OmeWriteError as exc:
            QMessageBox.critical(self, "Save Failed", str(exc))
            return False
        self.setWindowTitle(f"OME Metadata Editor - {self._document.display_name}")
        self.statusBar().showMessage(f"Saved: {output_path}")
        return True

    def open_template(self) -> None:
        file_path, _ = QFileDialog.getOpenFileName(
            self, "Load Template", str(Path.home()), "Templates (*.template *.txt);;All files (*)"
        )
        if file_path:
            self.load_template(file_path)

    def load_template(self, path: str | Path) -> bool:
        try:
            template = load_template_file(path)
        except MalformedTemplateError as exc:
            QMessageBox.critical(self, "Template Failed", str(exc))
            return False
        self.notes_pane.set_template(template)
        self._reload_forms()
        self.statusBar().showMessage(
            f"Template {path}: {len(template.fields)} field(s), {len(template.errors)} skipped"
        )
        return True

    def set_editable(self, editable: bool) -> None:
        self.metadata_pane.set_editable(editable)
        self.notes_pane.set_editable(editable)
        self.wiscscan_pane.set_editable(editable)
        if self._editable_action.isChecked() != editable:
            self._editable_action.setChecked(editable)

    def _reload_forms(self) -> None:
        values = self._binder.load()
        logger.debug("Loaded %d bound field value(s)", len(values))
        self.notes_pane.refresh_state()
        self.wiscscan_pane.refresh_state()

    def _on_tab_changed(self, index: int) -> None:
        widget = self.tabs.widget(index)
        if widget is self.metadata_pane:
            if self._metadata_stale:
                self.metadata_pane.refresh()
                self._metadata_stale = False
        elif self._session.tree is not None:
            self._reload_forms()

    def _on_document_edited(self) -> None:
        self._metadata_stale = True
        self._mark_modified()

    def _on_metadata_edited(self) -> None:
        self._mark_modified()

    def _mark_modified(self) -> None:
        if self._document is None:
            return
        self._document.modified = True
        self.setWindowTitle(f"OME Metadata Editor - {self._document.display_name} *")

    def _on_edit_failed(self, message: str) -> None:
        self.statusBar().showMessage(message)
