"""Tree view of OME-XML elements with an editable attribute table."""

from __future__ import annotations

from lxml import etree
from PySide6.QtCore import QAbstractItemModel, QModelIndex, Qt, Signal
from PySide6.QtWidgets import (
    QAbstractItemView,
    QHeaderView,
    QLabel,
    QPlainTextEdit,
    QSplitter,
    QStackedWidget,
    QStyledItemDelegate,
    QStyleOptionViewItem,
    QTableWidget,
    QTableWidgetItem,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
    QWidget,
)

from omeeditor.logs import get_logger
from omeeditor.model.document import OmeDocument
from omeeditor.ome.tree import AttributedTree, local_name

logger = get_logger(__name__)

TREE_COLUMNS = ("Attribute", "Value")
RAW_MESSAGE = "Metadata parsing failed. Here is the raw info. Good luck!"

# Values longer than this, multi-line values and descriptions get a text area.
LONG_VALUE_LENGTH = 40
TEXT_AREA_ROWS = 4

# Tree items carry an element index, name cells the qualified attribute key.
_ELEMENT_ROLE = Qt.ItemDataRole.UserRole
_ATTRIBUTE_ROLE = Qt.ItemDataRole.UserRole
_EDIT_TRIGGERS = (
    QAbstractItemView.EditTrigger.DoubleClicked
    | QAbstractItemView.EditTrigger.EditKeyPressed
    | QAbstractItemView.EditTrigger.AnyKeyPressed
)


def needs_text_area(name: str, value: str) -> bool:
    return name == "Description" or "\n" in value or len(value) > LONG_VALUE_LENGTH


class AttributeValueDelegate(QStyledItemDelegate):
    """Edits short values in a line edit and long ones in a taller text area."""

    def __init__(self, table: QTableWidget) -> None:
        super().__init__(table)
        self._table = table

    def createEditor(
        self, parent: QWidget, option: QStyleOptionViewItem, index: QModelIndex
    ) -> QWidget:
        name = index.siblingAtColumn(0).data() or ""
        if not needs_text_area(name, index.data() or ""):
            return super().createEditor(parent, option, index)

        row_height = self._table.verticalHeader().defaultSectionSize()
        self._table.setRowHeight(index.row(), row_height * TEXT_AREA_ROWS)
        editor = QPlainTextEdit(parent)
        editor.setLineWrapMode(QPlainTextEdit.LineWrapMode.WidgetWidth)
        return editor

    def setEditorData(self, editor: QWidget, index: QModelIndex) -> None:
        if isinstance(editor, QPlainTextEdit):
            editor.setPlainText(index.data() or "")
        else:
            super().setEditorData(editor, index)

    def setModelData(
        self, editor: QWidget, model: QAbstractItemModel, index: QModelIndex
    ) -> None:
        if isinstance(editor, QPlainTextEdit):
            model.setData(index, editor.toPlainText())
        else:
            super().setModelData(editor, model, index)

    def destroyEditor(self, editor: QWidget, index: QModelIndex) -> None:
        if isinstance(editor, QPlainTextEdit):
            self._table.setRowHeight(
                index.row(), self._table.verticalHeader().defaultSectionSize()
            )
        super().destroyEditor(editor, index)


class MetadataPane(QStackedWidget):
    """Shows the parsed element tree, or the raw text when parsing failed."""

    document_edited = Signal()

    def __init__(self) -> None:
        super().__init__()
        self._elements: list[etree._Element] = []
        self._document: OmeDocument | None = None
        self._current: etree._Element | None = None
        self._editable = True

        self.tree = QTreeWidget()
        self.tree.setHeaderHidden(True)
        self.tree.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self.tree.currentItemChanged.connect(self._on_current_item_changed)

        self.cdata = QPlainTextEdit()
        self.cdata.setReadOnly(True)
        self.cdata.setMaximumHeight(self.cdata.fontMetrics().lineSpacing() * 4 + 12)

        self.attribute_table = QTableWidget(0, len(TREE_COLUMNS))
        self.attribute_table.setHorizontalHeaderLabels(list(TREE_COLUMNS))
        self.attribute_table.setEditTriggers(_EDIT_TRIGGERS)
        self.attribute_table.verticalHeader().setVisible(False)
        self.attribute_table.horizontalHeader().setSectionResizeMode(
            1, QHeaderView.ResizeMode.Stretch
        )
        self.value_delegate = AttributeValueDelegate(self.attribute_table)
        self.attribute_table.setItemDelegateForColumn(1, self.value_delegate)
        self.attribute_table.itemChanged.connect(self._on_item_changed)

        attributes_pane = QWidget()
        attributes_layout = QVBoxLayout(attributes_pane)
        attributes_layout.addWidget(self.cdata)
        attributes_layout.addWidget(self.attribute_table)

        splitter = QSplitter()
        splitter.addWidget(self.tree)
        splitter.addWidget(attributes_pane)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 2)

        self.raw_text = QPlainTextEdit()
        self.raw_text.setReadOnly(True)
        self.raw_text.setLineWrapMode(QPlainTextEdit.LineWrapMode.WidgetWidth)
        raw_panel = QWidget()
        raw_layout = QVBoxLayout(raw_panel)
        raw_layout.addWidget(QLabel(RAW_MESSAGE))
        raw_layout.addWidget(self.raw_text)

        self._tree_page = self.addWidget(splitter)
        self._raw_page = self.addWidget(raw_panel)

    @property
    def is_raw(self) -> bool:
        return self.currentIndex() == self._raw_page

    def set_editable(self, editable: bool) -> None:
        self._editable = editable
        self.attribute_table.setEditTriggers(
            _EDIT_TRIGGERS if editable else QAbstractItemView.EditTrigger.NoEditTriggers
        )

    def set_document(self, document: OmeDocument | None) -> None:
        self._document = document
        self.refresh()

    def refresh(self) -> None:
        self.tree.clear()
        self._elements = []
        self._clear_details()

        document = self._document
        if document is not None and document.tree is None:
            self.raw_text.setPlainText(document.raw_text)
            self.setCurrentIndex(self._raw_page)
            return

        self.raw_text.clear()
        self.setCurrentIndex(self._tree_page)
        if document is None or document.tree is None:
            return
        self._build_tree(document.tree.root, self.tree.invisibleRootItem())
        self.tree.expandAll()

    def _build_tree(self, element: etree._Element, parent: QTreeWidgetItem) -> None:
        item = QTreeWidgetItem(parent, [local_name(element)])
        item.setData(0, _ELEMENT_ROLE, len(self._elements))
        self._elements.append(element)
        for child in AttributedTree.children(element):
            self._build_tree(child, item)

    def _on_current_item_changed(self, current: QTreeWidgetItem | None, _previous) -> None:
        if current is None:
            self._clear_details()
            return

        element = self._elements[current.data(0, _ELEMENT_ROLE)]
        self._current = element
        self.cdata.setPlainText(AttributedTree.character_data(element))

        keys = list(element.attrib.keys())
        items = AttributedTree.attribute_items(element)
        self.attribute_table.blockSignals(True)
        try:
            self.attribute_table.setRowCount(len(items))
            for row, (key, (name, value)) in enumerate(zip(keys, items)):
                name_item = QTableWidgetItem(name)
                name_item.setFlags(name_item.flags() & ~Qt.ItemFlag.ItemIsEditable)
                name_item.setData(_ATTRIBUTE_ROLE, key)
                self.attribute_table.setItem(row, 0, name_item)
                self.attribute_table.setItem(row, 1, QTableWidgetItem(value))
        finally:
            self.attribute_table.blockSignals(False)

    def _on_item_changed(self, item: QTableWidgetItem) -> None:
        if item.column() != 1 or self._current is None:
            return
        name_item = self.attribute_table.item(item.row(), 0)
        if name_item is None:
            return
        key = name_item.data(_ATTRIBUTE_ROLE)
        if AttributedTree.get_attribute(self._current, key) == item.text():
            return
        AttributedTree.set_attribute(self._current, key, item.text())
        logger.debug("%s.%s = %r", local_name(self._current), name_item.text(), item.text())
        self.document_edited.emit()

    def _clear_details(self) -> None:
        self._current = None
        self.cdata.clear()
        self.attribute_table.blockSignals(True)
        self.attribute_table.setRowCount(0)
        self.attribute_table.blockSignals(False)
