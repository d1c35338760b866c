"""Default decorator provider: finds image references in plain text."""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import os
import re
import shutil
import tempfile
import threading
from pathlib import Path
from urllib.parse import unquote, urlparse

from gutter_preview.preview.interfaces import DecoratorProvider
from gutter_preview.preview.types import DocumentSnapshot, ImageInfo, ImageInfoResponse, TextRange


IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "gif", "svg", "bmp", "ico", "webp", "tif", "tiff")
MAX_LINE_LENGTH = 20000
_ORIGINAL_LABEL_LIMIT = 48

logger = logging.getLogger(__name__)

_EXT_SUFFIXES = tuple(f".{ext}" for ext in IMAGE_EXTENSIONS)
_DATA_URI_RE = re.compile(r"data:image/(?P<subtype>[\w.+-]+);base64,(?P<data>[A-Za-z0-9+/=]+)")
# Image references never contain these delimiters.
_TOKEN_RE = re.compile(r"[^\s'\"()<>\[\]]+")
_URL_SCHEME_RE = re.compile(r"https?://", re.IGNORECASE)
_TRAILING_PUNCTUATION = ".,;:!?*"
_PATH_PUNCTUATION = "_-./\\~@%+"
_STEM_PUNCTUATION = "_-~@%+"

_DATA_SUFFIXES = {
    "png": ".png",
    "jpeg": ".jpg",
    "jpg": ".jpg",
    "gif": ".gif",
    "svg+xml": ".svg",
    "webp": ".webp",
    "bmp": ".bmp",
    "x-icon": ".ico",
    "vnd.microsoft.icon": ".ico",
}


def _overlaps(span: tuple[int, int], taken: list[tuple[int, int]]) -> bool:
    return any(span[0] < end and start < span[1] for start, end in taken)


def _label(text: str) -> str:
    if len(text) <= _ORIGINAL_LABEL_LIMIT:
        return text
    return text[:_ORIGINAL_LABEL_LIMIT] + "..."


def _is_path_char(ch: str) -> bool:
    return ch.isalnum() or ch in _PATH_PUNCTUATION


def _is_stem_char(ch: str) -> bool:
    return ch.isalnum() or ch in _STEM_PUNCTUATION


def _url_span(token: str) -> tuple[int, int] | None:
    """Span of an http(s) image URL inside ``token``, query string allowed."""
    scheme = _URL_SCHEME_RE.search(token)
    if scheme is None:
        return None
    end = len(token.rstrip(_TRAILING_PUNCTUATION))
    rest = token[scheme.end():end].split("?", 1)[0]
    if not rest.lower().endswith(_EXT_SUFFIXES) or rest.rfind(".") <= 0:
        return None
    return scheme.start(), end


def _path_span(token: str) -> tuple[int, int] | None:
    """Span of the trailing image path inside ``token``.

    The path is the run of path characters before the extension, extended
    over a drive letter and a ``file://`` prefix.
    """
    end = len(token.rstrip(_TRAILING_PUNCTUATION))
    if not token[:end].lower().endswith(_EXT_SUFFIXES):
        return None
    dot = token.rfind(".", 0, end)
    if dot <= 0 or not _is_stem_char(token[dot - 1]):
        return None

    start = dot
    while start > 0 and _is_path_char(token[start - 1]):
        start -= 1
    if (
        start >= 2
        and token[start - 1] == ":"
        and token[start - 2].isalpha()
        and (start == 2 or not token[start - 3].isalnum())
    ):
        start -= 2
        while start > 0 and _is_path_char(token[start - 1]):
            start -= 1
    if token[:start].lower().endswith("file:"):
        start -= len("file:")
    return start, end


class ImageReferenceProvider(DecoratorProvider):
    """Recognizes remote URLs, local paths and base64 data URIs of images.

    Relative paths are tried against the document folder, every workspace
    folder and every workspace folder joined with the configured source
    folder; references that do not resolve to an existing file are skipped.

    Decoded data URIs are written to ``data_dir``. Without an explicit
    directory a private temporary one is created on first use and removed
    by ``close()``.
    """

    def __init__(self, data_dir: str | None = None) -> None:
        self._data_dir: Path | None = Path(data_dir) if data_dir else None
        self._owns_data_dir = data_dir is None
        self._data_dir_lock = threading.Lock()
        self._closed = False

    @property
    def data_dir(self) -> Path | None:
        return self._data_dir

    def provide(self, snapshot: DocumentSnapshot) -> ImageInfoResponse:
        images: list[ImageInfo] = []
        for line_no, line in enumerate(str(snapshot.text or "").split("\n")):
            if len(line) > MAX_LINE_LENGTH:
                continue
            images.extend(self._scan_line(snapshot, line_no, line))
        return ImageInfoResponse(images=tuple(images))

    def close(self) -> None:
        with self._data_dir_lock:
            self._closed = True
            if not self._owns_data_dir or self._data_dir is None:
                return
            data_dir, self._data_dir = self._data_dir, None
        try:
            shutil.rmtree(data_dir)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("Could not remove image data directory %s: %s", data_dir, exc)

    def _scan_line(self, snapshot: DocumentSnapshot, line_no: int, line: str) -> list[ImageInfo]:
        found: list[tuple[int, ImageInfo]] = []
        taken: list[tuple[int, int]] = []

        for match in _DATA_URI_RE.finditer(line):
            span = match.span()
            taken.append(span)
            display = self._materialize_data_uri(match.group("subtype"), match.group("data"))
            if display is None:
                continue
            found.append((span[0], self._info(line_no, span, display, _label(match.group(0)))))

        for token in _TOKEN_RE.finditer(line):
            base = token.start()
            text = token.group(0)

            local = _url_span(text)
            if local is not None:
                span = (base + local[0], base + local[1])
                if not _overlaps(span, taken):
                    taken.append(span)
                    url = line[span[0]:span[1]]
                    found.append((span[0], self._info(line_no, span, url, url)))
                continue

            local = _path_span(text)
            if local is None:
                continue
            span = (base + local[0], base + local[1])
            if _overlaps(span, taken):
                continue
            raw = line[span[0]:span[1]]
            resolved = self._resolve_local(snapshot, raw)
            if resolved is None:
                continue
            taken.append(span)
            found.append((span[0], self._info(line_no, span, resolved, raw)))

        found.sort(key=lambda item: item[0])
        return [info for _, info in found]

    @staticmethod
    def _info(line_no: int, span: tuple[int, int], display: str, original: str) -> ImageInfo:
        return ImageInfo(
            range=TextRange.from_coords(line_no, span[0], line_no, span[1]),
            display_path=display,
            original_path=original,
        )

    def _resolve_local(self, snapshot: DocumentSnapshot, raw: str) -> str | None:
        text = raw
        if text.lower().startswith("file://"):
            text = unquote(urlparse(text).path)
            if re.match(r"^/[A-Za-z]:", text):
                text = text[1:]
        text = os.path.expanduser(text)

        candidates: list[str] = []
        if os.path.isabs(text):
            candidates.append(text)
        relative = text.lstrip("/\\")
        if snapshot.file_path:
            candidates.append(os.path.join(os.path.dirname(snapshot.file_path), text))
        for folder in snapshot.workspace_folders:
            candidates.append(os.path.join(folder, relative))
            if snapshot.source_folder:
                candidates.append(os.path.join(folder, snapshot.source_folder, relative))

        for candidate in candidates:
            try:
                if os.path.isfile(candidate):
                    return os.path.abspath(candidate)
            except OSError:
                continue
        return None

    def _materialize_data_uri(self, subtype: str, data: str) -> str | None:
        try:
            payload = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            logger.debug("Skipping undecodable data URI")
            return None
        suffix = _DATA_SUFFIXES.get(subtype.lower(), ".img")
        digest = hashlib.sha1(payload).hexdigest()
        try:
            data_dir = self._ensure_data_dir()
            if data_dir is None:
                return None
            target = data_dir / f"{digest}{suffix}"
            if target.is_file():
                return str(target)
            with tempfile.NamedTemporaryFile("wb", dir=data_dir, suffix=suffix, delete=False) as tmp:
                tmp.write(payload)
                temp_name = tmp.name
            os.replace(temp_name, target)
        except OSError:
            logger.warning("Could not write data URI image to %s", self._data_dir, exc_info=True)
            return None
        return str(target)

    def _ensure_data_dir(self) -> Path | None:
        with self._data_dir_lock:
            if self._closed:
                return None
            if self._data_dir is None:
                self._data_dir = Path(tempfile.mkdtemp(prefix="gutterpreview-data-"))
            else:
                self._data_dir.mkdir(parents=True, exist_ok=True)
            return self._data_dir
