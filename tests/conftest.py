"""Shared fixtures: a Qt application, event-loop helpers and collaborator fakes."""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import threading
import time

import pytest
from PySide6.QtWidgets import QApplication

from gutter_preview.preview.interfaces import (
    ConfigurationSource,
    DecorationHandle,
    DecorationRenderer,
    DecoratorProvider,
    EditorDocument,
    EditorHost,
    ImageProbeError,
    ImageProber,
)
from gutter_preview.preview.types import ImageDimensions, ImageInfo, ImageInfoResponse, TextRange


class FakeDocument(EditorDocument):
    def __init__(self, uri, text="", file_path=None):
        self._uri = uri
        self._text = text
        self._file_path = file_path
        self._version = 1

    @property
    def uri(self):
        return self._uri

    @property
    def file_path(self):
        return self._file_path

    @property
    def version(self):
        return self._version

    def text(self):
        return self._text

    def set_text(self, text):
        self._text = text
        self._version += 1


class FakeView:
    def __init__(self, editor_id):
        self.editor_id = editor_id


class FakeHost(EditorHost):
    def __init__(self, version="1.80.0"):
        super().__init__()
        self._version = version
        self._views = {}
        self._documents = {}
        self.folders = []

    @property
    def version(self):
        return self._version

    def show(self, document, count=1):
        self._documents[document.uri] = document
        views = self._views.setdefault(document.uri, [])
        for _ in range(count):
            views.append(FakeView(f"{document.uri}#{len(views)}"))
        return list(views)

    def hide(self, document):
        self._views.pop(document.uri, None)

    def editors_for_document(self, document):
        return list(self._views.get(document.uri, []))

    def visible_documents(self):
        return [self._documents[uri] for uri in self._views if uri in self._documents]

    def workspace_folders(self):
        return list(self.folders)


class FakeHandle(DecorationHandle):
    def __init__(self, options):
        self.options = options
        self.attached = []
        self.release_count = 0

    def attach(self, view, ranges):
        self.attached.append((view, list(ranges)))

    def release(self):
        self.release_count += 1


class FakeRenderer(DecorationRenderer):
    def __init__(self):
        self.created = []

    def create(self, options):
        handle = FakeHandle(options)
        self.created.append(handle)
        return handle


class FakeProvider(DecoratorProvider):
    """Returns images keyed by a marker in the text; ``fail`` makes it raise."""

    def __init__(self):
        self.calls = []
        self.images = {}
        self.fail = False
        self.gates = {}
        self._lock = threading.Lock()

    def set_images(self, text, images):
        self.images[text] = tuple(images)

    def provide(self, snapshot):
        with self._lock:
            self.calls.append(snapshot)
        gate = self.gates.get(snapshot.text)
        if gate is not None:
            gate.wait(5)
        if self.fail:
            raise RuntimeError("provider failed")
        return ImageInfoResponse(images=self.images.get(snapshot.text, ()))


class FakeProber(ImageProber):
    def __init__(self, dimensions=None, error=None):
        self.dimensions = dimensions or ImageDimensions(640, 480)
        self.error = error
        self.calls = []

    def probe(self, path):
        self.calls.append(path)
        if self.error is not None:
            raise self.error
        return self.dimensions


class DictConfig(ConfigurationSource):
    def __init__(self, **values):
        self.values = dict(values)

    def get(self, document, key, default):
        return self.values.get(key, default)


def image(start, end, path="/img/a.png", original="a.png", line=0):
    return ImageInfo(range=TextRange.from_coords(line, start, line, end), display_path=path, original_path=original)


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def spin(qapp):
    def _spin(ms):
        deadline = time.monotonic() + ms / 1000.0
        while time.monotonic() < deadline:
            qapp.processEvents()
            time.sleep(0.002)

    return _spin


@pytest.fixture
def wait_until(qapp):
    def _wait(predicate, timeout_s=3.0):
        deadline = time.monotonic() + timeout_s
        while time.monotonic() < deadline:
            qapp.processEvents()
            if predicate():
                return True
            time.sleep(0.002)
        qapp.processEvents()
        return bool(predicate())

    return _wait


@pytest.fixture
def host(qapp):
    return FakeHost()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def config():
    return DictConfig()


@pytest.fixture
def make_document():
    def _make(uri="file:///doc.md", text="", file_path=None):
        return FakeDocument(uri, text, file_path)

    return _make


@pytest.fixture
def make_image():
    return image


@pytest.fixture
def make_prober():
    return FakeProber


@pytest.fixture
def probe_error():
    return ImageProbeError
