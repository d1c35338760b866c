from __future__ import annotations

import os
import urllib.error
import urllib.request
from urllib.parse import unquote, urlparse

from PySide6.QtCore import QBuffer, QByteArray, QIODevice
from PySide6.QtGui import QImageReader

from gutter_preview.preview.interfaces import ImageProber, ImageProbeError
from gutter_preview.preview.types import ImageDimensions


MAX_REMOTE_BYTES = 16 * 1024 * 1024


class QtImageProber(ImageProber):
    """Reads image dimensions from the header without decoding pixel data."""

    def __init__(self, *, timeout_s: float = 10.0, user_agent: str = "gutter-preview") -> None:
        self._timeout_s = max(1.0, float(timeout_s))
        self._user_agent = user_agent

    def probe(self, path: str) -> ImageDimensions:
        text = str(path or "").strip()
        if not text:
            raise ImageProbeError("No image path given.", kind="missing")
        scheme = urlparse(text).scheme.lower()
        if scheme in {"http", "https"}:
            return self._probe_bytes(self._fetch(text), text)
        if scheme == "file":
            text = unquote(urlparse(text).path)
        if not os.path.isfile(text):
            raise ImageProbeError(f"Image not found: {text}", kind="missing")
        reader = QImageReader(text)
        return self._read_size(reader, text)

    def _fetch(self, url: str) -> bytes:
        request = urllib.request.Request(url=url, headers={"User-Agent": self._user_agent}, method="GET")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout_s) as response:
                body = response.read(MAX_REMOTE_BYTES + 1)
        except urllib.error.HTTPError as exc:
            status = int(getattr(exc, "code", 0) or 0)
            raise ImageProbeError(f"Image request failed with HTTP {status}.", kind="network") from None
        except urllib.error.URLError as exc:
            raise ImageProbeError(f"Network error while fetching {url}.", kind="network") from exc
        except TimeoutError as exc:
            raise ImageProbeError(f"Timed out while fetching {url}.", kind="network") from exc
        if len(body) > MAX_REMOTE_BYTES:
            raise ImageProbeError(f"Image at {url} is too large to probe.", kind="unsupported")
        return body

    def _probe_bytes(self, data: bytes, label: str) -> ImageDimensions:
        buffer = QBuffer()
        buffer.setData(QByteArray(data))
        if not buffer.open(QIODevice.ReadOnly):
            raise ImageProbeError(f"Could not read image data for {label}.", kind="invalid")
        try:
            return self._read_size(QImageReader(buffer), label)
        finally:
            buffer.close()

    @staticmethod
    def _read_size(reader: QImageReader, label: str) -> ImageDimensions:
        if not reader.canRead():
            raise ImageProbeError(f"Unsupported image format: {label}", kind="unsupported")
        size = reader.size()
        if not size.isValid() or size.width() <= 0 or size.height() <= 0:
            # Some formats only report a size once the image is decoded.
            image = reader.read()
            if image.isNull():
                raise ImageProbeError(f"Could not read image size: {label}", kind="invalid")
            return ImageDimensions(width=image.width(), height=image.height())
        return ImageDimensions(width=size.width(), height=size.height())
