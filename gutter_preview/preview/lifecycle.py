from __future__ import annotations

import logging

from PySide6.QtCore import QObject

from gutter_preview.preview.annotation_cache import AnnotationCache
from gutter_preview.preview.interfaces import EditorDocument, EditorHost
from gutter_preview.preview.scan_coordinator import ScanCoordinator


logger = logging.getLogger(__name__)


class LifecycleBridge(QObject):
    """Dispatches editor host events to the scan coordinator and cache."""

    def __init__(
        self,
        *,
        host: EditorHost,
        coordinator: ScanCoordinator,
        cache: AnnotationCache,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._host = host
        self._coordinator = coordinator
        self._cache = cache
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def activate(self) -> None:
        if self._active:
            return
        self._host.textChanged.connect(self._on_text_changed)
        self._host.activeEditorChanged.connect(self._on_active_editor_changed)
        self._host.workspaceFoldersChanged.connect(self.refresh_visible_documents)
        self._host.documentOpened.connect(self._on_document_opened)
        self._host.documentClosed.connect(self._on_document_closed)
        self._active = True
        self.refresh_visible_documents()

    def deactivate(self) -> None:
        if not self._active:
            return
        self._host.textChanged.disconnect(self._on_text_changed)
        self._host.activeEditorChanged.disconnect(self._on_active_editor_changed)
        self._host.workspaceFoldersChanged.disconnect(self.refresh_visible_documents)
        self._host.documentOpened.disconnect(self._on_document_opened)
        self._host.documentClosed.disconnect(self._on_document_closed)
        self._active = False

    def refresh_visible_documents(self) -> None:
        for document in self._host.visible_documents():
            if document is not None:
                self._coordinator.request_scan(document)

    def _on_text_changed(self, document: EditorDocument | None) -> None:
        self._coordinator.request_scan(document)

    def _on_active_editor_changed(self, document: EditorDocument | None) -> None:
        self._coordinator.request_scan(document)

    def _on_document_opened(self, document: EditorDocument | None) -> None:
        if document is None:
            return
        # The identity may belong to an earlier document (e.g. a revived
        # view); start from an empty annotation state.
        uri = str(document.uri or "")
        self._coordinator.invalidate(uri)
        self._cache.clear(uri)
        self._coordinator.request_scan(document)

    def _on_document_closed(self, document: EditorDocument | None) -> None:
        if document is None:
            return
        uri = str(document.uri or "")
        logger.debug("Releasing annotations of closed document %s", uri)
        self._coordinator.cancel_pending(uri)
        self._coordinator.invalidate(uri)
        self._cache.clear(uri)
