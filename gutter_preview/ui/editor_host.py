from __future__ import annotations

import logging
import os
from pathlib import Path

from PySide6.QtCore import QObject, qVersion
from PySide6.QtGui import QTextDocument
from PySide6.QtWidgets import QPlainTextDocumentLayout, QWidget

from gutter_preview.preview.interfaces import EditorDocument, EditorHost
from gutter_preview.ui.preview_editor import HoverProvider, PreviewEditor


logger = logging.getLogger(__name__)


def uri_for_path(path: str) -> str:
    try:
        return Path(path).resolve().as_uri()
    except Exception:
        return Path(os.path.abspath(path)).as_uri()


class PreviewDocument(EditorDocument):
    """A document shared by every editor view that shows it."""

    def __init__(self, uri: str, qt_document: QTextDocument, file_path: str | None = None) -> None:
        self._uri = uri
        self.qt_document = qt_document
        self._file_path = file_path

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def file_path(self) -> str | None:
        return self._file_path

    @property
    def version(self) -> int:
        return int(self.qt_document.revision())

    def text(self) -> str:
        return self.qt_document.toPlainText()

    def display_name(self) -> str:
        if self._file_path:
            return os.path.basename(self._file_path)
        return self._uri.split(":", 1)[-1]


class QtEditorHost(EditorHost):
    """Document registry and editor views for the preview application."""

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._documents: dict[str, PreviewDocument] = {}
        self._editors: list[PreviewEditor] = []
        self._hidden_editor_ids: set[str] = set()
        self._workspace_folders: list[str] = []
        self._hover_provider: HoverProvider | None = None
        self._untitled_counter = 0

    # -------- EditorHost --------

    @property
    def version(self) -> str:
        return str(qVersion())

    def editors_for_document(self, document: EditorDocument) -> list[PreviewEditor]:
        uri = str(document.uri or "")
        return [
            ed
            for ed in self._editors
            if ed.editor_id not in self._hidden_editor_ids
            and ed.preview_document is not None
            and ed.preview_document.uri == uri
        ]

    def visible_documents(self) -> list[PreviewDocument]:
        seen: dict[str, PreviewDocument] = {}
        for ed in self._editors:
            if ed.editor_id in self._hidden_editor_ids:
                continue
            doc = ed.preview_document
            if isinstance(doc, PreviewDocument) and doc.uri not in seen:
                seen[doc.uri] = doc
        return list(seen.values())

    def workspace_folders(self) -> list[str]:
        return list(self._workspace_folders)

    # -------- document registry --------

    def documents(self) -> list[PreviewDocument]:
        return list(self._documents.values())

    def document_for_uri(self, uri: str) -> PreviewDocument | None:
        return self._documents.get(uri)

    def open_document(self, file_path: str | None = None, text: str | None = None) -> PreviewDocument:
        if file_path:
            uri = uri_for_path(file_path)
            existing = self._documents.get(uri)
            if existing is not None:
                return existing
            if text is None:
                with open(file_path, "r", encoding="utf-8") as f:
                    text = f.read()
            file_path = str(Path(file_path).resolve())
        else:
            self._untitled_counter += 1
            uri = f"untitled:Untitled-{self._untitled_counter}"

        qt_doc = QTextDocument(self)
        qt_doc.setDocumentLayout(QPlainTextDocumentLayout(qt_doc))
        qt_doc.setPlainText(text or "")
        qt_doc.setModified(False)

        document = PreviewDocument(uri, qt_doc, file_path)
        self._documents[uri] = document
        qt_doc.contentsChange.connect(lambda *_args, d=document: self.textChanged.emit(d))
        logger.debug("Opened %s", uri)
        self.documentOpened.emit(document)
        return document

    def close_document(self, document: PreviewDocument) -> None:
        for ed in [e for e in self._editors if e.preview_document is document]:
            self._forget_editor(ed)
        if self._documents.pop(document.uri, None) is None:
            return
        logger.debug("Closed %s", document.uri)
        self.documentClosed.emit(document)
        document.qt_document.deleteLater()

    # -------- editor views --------

    def create_editor(self, document: PreviewDocument, parent: QWidget | None = None) -> PreviewEditor:
        editor = PreviewEditor(document, parent)
        editor.setDocument(document.qt_document)
        editor.set_hover_provider(self._hover_provider)
        self._editors.append(editor)
        return editor

    def close_editor(self, editor: PreviewEditor) -> None:
        if editor not in self._editors:
            return
        self._forget_editor(editor)
        document = editor.preview_document
        if isinstance(document, PreviewDocument) and not any(
            e.preview_document is document for e in self._editors
        ):
            self.close_document(document)

    def editors(self) -> list[PreviewEditor]:
        return list(self._editors)

    def set_editor_visible(self, editor: PreviewEditor, visible: bool) -> None:
        if visible:
            self._hidden_editor_ids.discard(editor.editor_id)
        else:
            self._hidden_editor_ids.add(editor.editor_id)

    def set_active_editor(self, editor: PreviewEditor | None) -> None:
        if editor is None:
            self.activeEditorChanged.emit(None)
            return
        self.set_editor_visible(editor, True)
        self.activeEditorChanged.emit(editor.preview_document)

    def set_hover_provider(self, provider: HoverProvider | None) -> None:
        self._hover_provider = provider
        for ed in self._editors:
            ed.set_hover_provider(provider)

    def set_workspace_folders(self, folders: list[str]) -> None:
        cleaned: list[str] = []
        for folder in folders or []:
            text = str(folder or "").strip()
            if text and os.path.isdir(text):
                cleaned.append(str(Path(text).resolve()))
        if cleaned == self._workspace_folders:
            return
        self._workspace_folders = cleaned
        self.workspaceFoldersChanged.emit()

    def _forget_editor(self, editor: PreviewEditor) -> None:
        try:
            self._editors.remove(editor)
        except ValueError:
            return
        self._hidden_editor_ids.discard(editor.editor_id)
        editor.set_hover_provider(None)
