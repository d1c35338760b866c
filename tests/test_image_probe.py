"""Tests for QtImageProber on local files."""

import pytest
from PySide6.QtGui import QColor, QImage

from gutter_preview.preview.interfaces import ImageProbeError
from gutter_preview.services.image_probe import QtImageProber


@pytest.fixture
def png_file(qapp, tmp_path):
    path = tmp_path / "sample.png"
    image = QImage(40, 20, QImage.Format_ARGB32)
    image.fill(QColor("red"))
    assert image.save(str(path), "PNG")
    return path


class TestQtImageProber:
    def test_reads_png_dimensions(self, png_file):
        dims = QtImageProber().probe(str(png_file))

        assert (dims.width, dims.height) == (40, 20)

    def test_file_uri(self, png_file):
        dims = QtImageProber().probe(png_file.as_uri())

        assert (dims.width, dims.height) == (40, 20)

    def test_missing_file(self, qapp, tmp_path):
        with pytest.raises(ImageProbeError) as excinfo:
            QtImageProber().probe(str(tmp_path / "nope.png"))

        assert excinfo.value.kind == "missing"

    def test_not_an_image(self, qapp, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("just some text", encoding="utf-8")

        with pytest.raises(ImageProbeError) as excinfo:
            QtImageProber().probe(str(path))

        assert excinfo.value.kind == "unsupported"

    def test_empty_path(self):
        with pytest.raises(ImageProbeError) as excinfo:
            QtImageProber().probe("")

        assert excinfo.value.kind == "missing"
