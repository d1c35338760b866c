from __future__ import annotations

import concurrent.futures
import uuid
from typing import Any, Callable

from PySide6.QtCore import QEvent, QPoint, QRect, QSize, Qt, QTimer
from PySide6.QtGui import QColor, QPainter, QTextCursor, QTextCharFormat
from PySide6.QtWidgets import QPlainTextEdit, QTextEdit, QToolTip, QWidget

from gutter_preview.preview.hover_responder import hover_payload_to_html
from gutter_preview.preview.types import (
    HoverPayload,
    TextPosition,
    TextRange,
    codepoint_index_from_utf16_units,
    utf16_units_for_prefix,
)
from gutter_preview.ui.decorations import GutterDecoration


_HOVER_DELAY_MS = 250

HoverProvider = Callable[[Any, TextPosition], concurrent.futures.Future]


class GutterArea(QWidget):
    def __init__(self, editor: "PreviewEditor"):
        super().__init__(editor)
        self.previewEditor = editor

    def sizeHint(self):
        return QSize(self.previewEditor.gutterAreaWidth(), 0)

    def paintEvent(self, event):
        self.previewEditor.gutterAreaPaintEvent(event)


class PreviewEditor(QPlainTextEdit):
    """Plain text editor with a gutter that shows image decorations."""

    def __init__(self, document: Any = None, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.editor_id = str(uuid.uuid4())
        self.preview_document = document
        self._decorations: dict[int, tuple[GutterDecoration, list[TextRange]]] = {}
        self._hover_provider: HoverProvider | None = None
        self._hover_pending_pos = QPoint()
        self._hover_future: concurrent.futures.Future | None = None

        self.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)
        self.gutterArea = GutterArea(self)
        self.blockCountChanged.connect(self.updateGutterAreaWidth)
        self.updateRequest.connect(self.updateGutterArea)
        self.updateGutterAreaWidth(0)

        self._hover_timer = QTimer(self)
        self._hover_timer.setSingleShot(True)
        self._hover_timer.setInterval(_HOVER_DELAY_MS)
        self._hover_timer.timeout.connect(self._on_hover_timer)
        self._hover_future_pump = QTimer(self)
        self._hover_future_pump.setInterval(24)
        self._hover_future_pump.timeout.connect(self._drain_hover_future)

        self.setMouseTracking(True)
        self.viewport().setMouseTracking(True)
        self.viewport().installEventFilter(self)

    # --------- decorations ---------

    def add_gutter_decoration(self, decoration: GutterDecoration, ranges: list[TextRange]) -> None:
        self._decorations[id(decoration)] = (decoration, list(ranges))
        self._refresh_decorations()

    def remove_gutter_decoration(self, decoration: GutterDecoration) -> None:
        if self._decorations.pop(id(decoration), None) is not None:
            self._refresh_decorations()

    def gutter_decorations(self) -> list[tuple[GutterDecoration, list[TextRange]]]:
        return list(self._decorations.values())

    def _refresh_decorations(self) -> None:
        self._rebuild_extra_selections()
        self.gutterArea.update()

    def _rebuild_extra_selections(self) -> None:
        selections: list[QTextEdit.ExtraSelection] = []
        for decoration, ranges in self._decorations.values():
            if not decoration.underline:
                continue
            for rng in ranges:
                start = self.document_offset(rng.start)
                end = self.document_offset(rng.end)
                if start < 0 or end < start:
                    continue
                sel = QTextEdit.ExtraSelection()
                cursor = QTextCursor(self.document())
                cursor.setPosition(start)
                cursor.setPosition(end, QTextCursor.KeepAnchor)
                sel.cursor = cursor
                fmt = QTextCharFormat()
                fmt.setFontUnderline(True)
                sel.format = fmt
                selections.append(sel)
        self.setExtraSelections(selections)

    def document_offset(self, position: TextPosition) -> int:
        block = self.document().findBlockByNumber(max(0, int(position.line)))
        if not block.isValid():
            return -1
        text = block.text()
        units = utf16_units_for_prefix(text, min(len(text), max(0, int(position.character))))
        return int(block.position() + units)

    def text_position_at(self, point: QPoint) -> TextPosition:
        cursor = self.cursorForPosition(point)
        block = cursor.block()
        character = codepoint_index_from_utf16_units(block.text(), cursor.positionInBlock())
        return TextPosition(cursor.blockNumber(), character)

    # --------- gutter ---------

    def gutterAreaWidth(self) -> int:
        digits = len(str(max(1, self.blockCount())))
        line_height = self.fontMetrics().height()
        return 6 + line_height + self.fontMetrics().horizontalAdvance("9") * digits

    def updateGutterAreaWidth(self, _):
        self.setViewportMargins(self.gutterAreaWidth(), 0, 0, 0)

    def updateGutterArea(self, rect, dy):
        if dy:
            self.gutterArea.scroll(0, dy)
        else:
            self.gutterArea.update(0, rect.y(), self.gutterArea.width(), rect.height())
        if rect.contains(self.viewport().rect()):
            self.updateGutterAreaWidth(0)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        cr = self.contentsRect()
        self.gutterArea.setGeometry(QRect(cr.left(), cr.top(), self.gutterAreaWidth(), cr.height()))

    def _icons_by_line(self) -> dict[int, list[GutterDecoration]]:
        by_line: dict[int, list[GutterDecoration]] = {}
        for decoration, ranges in self._decorations.values():
            for rng in ranges:
                by_line.setdefault(rng.start.line, []).append(decoration)
        return by_line

    def gutterAreaPaintEvent(self, event):
        painter = QPainter(self.gutterArea)
        gutter = self.palette().base().color().darker(108)
        painter.fillRect(event.rect(), gutter)
        number_color = QColor(gutter).darker(155) if gutter.lightness() >= 128 else QColor(gutter).lighter(155)

        icons = self._icons_by_line()
        line_height = self.fontMetrics().height()
        block = self.firstVisibleBlock()
        blockNumber = block.blockNumber()
        top = self.blockBoundingGeometry(block).translated(self.contentOffset()).top()
        bottom = top + self.blockBoundingRect(block).height()

        while block.isValid() and top <= event.rect().bottom():
            if block.isVisible() and bottom >= event.rect().top():
                painter.setPen(number_color)
                painter.drawText(
                    line_height + 4,
                    int(top),
                    max(0, self.gutterArea.width() - line_height - 6),
                    line_height,
                    Qt.AlignRight,
                    str(blockNumber + 1),
                )
                decorations = icons.get(blockNumber)
                if decorations:
                    self._paint_icon(painter, decorations[0], QRect(2, int(top), line_height, line_height))
            block = block.next()
            top = bottom
            bottom = top + self.blockBoundingRect(block).height()
            blockNumber += 1

    @staticmethod
    def _paint_icon(painter: QPainter, decoration: GutterDecoration, target: QRect) -> None:
        pixmap = decoration.pixmap()
        if pixmap.isNull():
            return
        # "contain": scale to fit the line box, keeping the aspect ratio.
        scaled = pixmap.scaled(target.size(), Qt.KeepAspectRatio, Qt.SmoothTransformation)
        x = target.x() + (target.width() - scaled.width()) // 2
        y = target.y() + (target.height() - scaled.height()) // 2
        painter.drawPixmap(x, y, scaled)

    # --------- hover ---------

    def set_hover_provider(self, provider: HoverProvider | None) -> None:
        self._hover_provider = provider

    def eventFilter(self, watched, event):
        if watched is self.viewport():
            et = event.type()
            if et == QEvent.MouseMove:
                pos = event.position().toPoint() if hasattr(event, "position") else event.pos()
                self._schedule_hover(pos)
            elif et in (QEvent.Leave, QEvent.Hide):
                self._clear_hover()
        return super().eventFilter(watched, event)

    def focusOutEvent(self, event):
        self._clear_hover()
        super().focusOutEvent(event)

    def _schedule_hover(self, pos: QPoint) -> None:
        if self._hover_provider is None:
            return
        self._hover_pending_pos = QPoint(pos)
        self._hover_timer.start()

    def _clear_hover(self) -> None:
        self._hover_timer.stop()
        self._hover_future = None
        self._hover_future_pump.stop()
        QToolTip.hideText()

    def _on_hover_timer(self) -> None:
        if self._hover_provider is None or self.preview_document is None:
            return
        position = self.text_position_at(self._hover_pending_pos)
        self._hover_future = self._hover_provider(self.preview_document, position)
        if not self._hover_future_pump.isActive():
            self._hover_future_pump.start()

    def _drain_hover_future(self) -> None:
        fut = self._hover_future
        if fut is None:
            self._hover_future_pump.stop()
            return
        if not fut.done():
            return
        self._hover_future = None
        self._hover_future_pump.stop()
        payload = fut.result()
        if not isinstance(payload, HoverPayload):
            QToolTip.hideText()
            return
        global_pos = self.viewport().mapToGlobal(self._hover_pending_pos + QPoint(12, 12))
        QToolTip.showText(global_pos, hover_payload_to_html(payload), self)
