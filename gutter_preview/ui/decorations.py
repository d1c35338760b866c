from __future__ import annotations

import os
import weakref
from typing import Any, Sequence
from urllib.parse import unquote, urlparse

from PySide6.QtCore import QObject
from PySide6.QtGui import QPixmap
from shiboken6 import isValid as _is_qobject_valid

from gutter_preview.preview.interfaces import DecorationHandle, DecorationRenderer, DecorationRenderOptions
from gutter_preview.preview.types import TextRange


class GutterDecoration(DecorationHandle):
    """Gutter icon plus optional underline, attached to one or more editors."""

    def __init__(self, options: DecorationRenderOptions) -> None:
        self.options = options
        self._views: "weakref.WeakSet[Any]" = weakref.WeakSet()
        self._pixmap: QPixmap | None = None
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def underline(self) -> bool:
        return self.options.text_decoration == "underline"

    def attach(self, view: Any, ranges: Sequence[TextRange]) -> None:
        if self._released:
            raise RuntimeError("Cannot attach a released decoration.")
        view.add_gutter_decoration(self, list(ranges))
        self._views.add(view)

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        for view in list(self._views):
            if isinstance(view, QObject) and not _is_qobject_valid(view):
                continue
            view.remove_gutter_decoration(self)
        self._views = weakref.WeakSet()
        self._pixmap = None

    def pixmap(self) -> QPixmap:
        if self._pixmap is None:
            self._pixmap = _load_icon(self.options.gutter_icon_path)
        return self._pixmap


def _load_icon(path: str) -> QPixmap:
    text = str(path or "")
    parsed = urlparse(text)
    if parsed.scheme.lower() == "file":
        text = unquote(parsed.path)
    elif parsed.scheme.lower() in {"http", "https"}:
        # Remote icons are shown on hover only.
        return QPixmap()
    if not os.path.isfile(text):
        return QPixmap()
    return QPixmap(text)


class GutterDecorationRenderer(DecorationRenderer):
    def create(self, options: DecorationRenderOptions) -> GutterDecoration:
        return GutterDecoration(options)
