from __future__ import annotations

import os

from PySide6.QtGui import QAction, QKeySequence
from PySide6.QtWidgets import QFileDialog, QMainWindow, QMessageBox, QTabWidget, QWidget

from gutter_preview.ui.editor_host import QtEditorHost
from gutter_preview.ui.preview_editor import PreviewEditor


class PreviewMainWindow(QMainWindow):
    def __init__(self, host: QtEditorHost, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.host = host
        self.setWindowTitle("Image Preview")
        self.resize(1000, 700)

        self.tabs = QTabWidget(self)
        self.tabs.setTabsClosable(True)
        self.tabs.setDocumentMode(True)
        self.tabs.tabCloseRequested.connect(self._on_tab_close_requested)
        self.tabs.currentChanged.connect(self._on_current_changed)
        self.setCentralWidget(self.tabs)

        self._build_menu()

    def _build_menu(self) -> None:
        file_menu = self.menuBar().addMenu("&File")

        new_action = QAction("New", self)
        new_action.setShortcut(QKeySequence.New)
        new_action.triggered.connect(self.new_file)
        file_menu.addAction(new_action)

        open_action = QAction("Open File...", self)
        open_action.setShortcut(QKeySequence.Open)
        open_action.triggered.connect(self._prompt_open_file)
        file_menu.addAction(open_action)

        folder_action = QAction("Open Folder...", self)
        folder_action.triggered.connect(self._prompt_open_folder)
        file_menu.addAction(folder_action)

        split_action = QAction("Open Current File In New Tab", self)
        split_action.triggered.connect(self.duplicate_current)
        file_menu.addAction(split_action)

        file_menu.addSeparator()
        quit_action = QAction("Quit", self)
        quit_action.setShortcut(QKeySequence.Quit)
        quit_action.triggered.connect(self.close)
        file_menu.addAction(quit_action)

    def new_file(self) -> PreviewEditor:
        document = self.host.open_document()
        return self._add_editor(document)

    def open_file(self, path: str) -> PreviewEditor | None:
        try:
            document = self.host.open_document(path)
        except OSError as exc:
            QMessageBox.warning(self, "Open Error", f"Could not read file:\n{exc}")
            return None
        return self._add_editor(document)

    def duplicate_current(self) -> PreviewEditor | None:
        current = self.tabs.currentWidget()
        if not isinstance(current, PreviewEditor) or current.preview_document is None:
            return None
        return self._add_editor(current.preview_document)

    def _add_editor(self, document) -> PreviewEditor:
        editor = self.host.create_editor(document, self.tabs)
        index = self.tabs.addTab(editor, document.display_name())
        self.tabs.setCurrentIndex(index)
        self._sync_visible_editors()
        return editor

    def _prompt_open_file(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Open File", os.getcwd())
        if path:
            self.open_file(path)

    def _prompt_open_folder(self) -> None:
        folder = QFileDialog.getExistingDirectory(self, "Open Folder", os.getcwd())
        if folder:
            self.host.set_workspace_folders([folder])

    def _on_tab_close_requested(self, index: int) -> None:
        editor = self.tabs.widget(index)
        self.tabs.removeTab(index)
        if isinstance(editor, PreviewEditor):
            self.host.close_editor(editor)
            editor.deleteLater()
        self._sync_visible_editors()

    def _on_current_changed(self, _index: int) -> None:
        current = self._sync_visible_editors()
        self.host.set_active_editor(current)

    def _sync_visible_editors(self) -> PreviewEditor | None:
        current = self.tabs.currentWidget()
        for i in range(self.tabs.count()):
            editor = self.tabs.widget(i)
            if isinstance(editor, PreviewEditor):
                self.host.set_editor_visible(editor, editor is current)
        return current if isinstance(current, PreviewEditor) else None
