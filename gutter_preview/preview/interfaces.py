"""Collaborator interfaces consumed by the preview core."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence

from PySide6.QtCore import QObject, Signal

from gutter_preview.preview.types import DocumentSnapshot, ImageDimensions, ImageInfoResponse, TextRange


GUTTER_ICON_SIZES = ("contain", "cover", "auto")
TEXT_DECORATIONS = ("underline", "none")


class ImageProbeError(RuntimeError):
    """Raised when image dimensions cannot be determined."""

    def __init__(self, message: str, *, kind: str = "invalid") -> None:
        super().__init__(message)
        self.kind = kind


@dataclass(frozen=True)
class DecorationRenderOptions:
    gutter_icon_path: str
    gutter_icon_size: str = "contain"
    text_decoration: str = "underline"

    def __post_init__(self) -> None:
        if self.gutter_icon_size not in GUTTER_ICON_SIZES:
            raise ValueError(f"Unknown gutter icon size: {self.gutter_icon_size!r}")
        if self.text_decoration not in TEXT_DECORATIONS:
            raise ValueError(f"Unknown text decoration: {self.text_decoration!r}")


class EditorDocument(ABC):
    @property
    @abstractmethod
    def uri(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def text(self) -> str:
        raise NotImplementedError

    @property
    def file_path(self) -> str | None:
        return None

    @property
    def version(self) -> int:
        return 0


class DecorationHandle(ABC):
    """Rendering resource owned by exactly one annotation record."""

    @abstractmethod
    def attach(self, view: Any, ranges: Sequence[TextRange]) -> None:
        raise NotImplementedError

    @abstractmethod
    def release(self) -> None:
        raise NotImplementedError


class DecorationRenderer(ABC):
    @abstractmethod
    def create(self, options: DecorationRenderOptions) -> DecorationHandle:
        raise NotImplementedError


class DecoratorProvider(ABC):
    @abstractmethod
    def provide(self, snapshot: DocumentSnapshot) -> ImageInfoResponse:
        """Find image references in ``snapshot``. Runs on a worker thread."""
        raise NotImplementedError


class ImageProber(ABC):
    @abstractmethod
    def probe(self, path: str) -> ImageDimensions:
        """Return pixel dimensions or raise ``ImageProbeError``. Runs on a worker thread."""
        raise NotImplementedError


class ConfigurationSource(ABC):
    @abstractmethod
    def get(self, document: EditorDocument | None, key: str, default: Any) -> Any:
        raise NotImplementedError


class EditorHost(QObject):
    """Editor state and lifecycle events.

    Concrete hosts emit the signals below with ``EditorDocument`` arguments
    and must override ``version``, ``editors_for_document``,
    ``visible_documents`` and ``workspace_folders``; the base versions raise
    ``NotImplementedError``.
    """

    textChanged = Signal(object)
    activeEditorChanged = Signal(object)
    workspaceFoldersChanged = Signal()
    documentOpened = Signal(object)
    documentClosed = Signal(object)

    @property
    def version(self) -> str:
        raise NotImplementedError

    def editors_for_document(self, document: EditorDocument) -> list[Any]:
        raise NotImplementedError

    def visible_documents(self) -> list[EditorDocument]:
        raise NotImplementedError

    def workspace_folders(self) -> list[str]:
        raise NotImplementedError
