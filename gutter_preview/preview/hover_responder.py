from __future__ import annotations

import concurrent.futures
import html
import logging
import re

from gutter_preview.preview.interfaces import ConfigurationSource, EditorDocument, EditorHost, ImageProber
from gutter_preview.preview.position_resolver import PositionResolver
from gutter_preview.preview.types import HoverPayload, ImageDimensions, TextPosition, TextRange, word_range_at
from gutter_preview.settings_schema import DEFAULT_MAX_HEIGHT, coerce_max_height


MIN_HOVER_HOST_VERSION = (1, 8)

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^\s*v?(\d+)\.(\d+)")
_IMAGE_MARKDOWN_RE = re.compile(r"^!\[(?P<label>.*?)\]\((?P<src>.*?)\|height=(?P<height>\d+)\)")


def host_supports_hover(version: str) -> bool:
    match = _VERSION_RE.match(str(version or ""))
    if match is None:
        return False
    return (int(match.group(1)), int(match.group(2))) >= MIN_HOVER_HOST_VERSION


def image_markdown(original_path: str, display_path: str, max_height: int) -> str:
    return f"![{original_path}]({display_path}|height={max_height})"


def with_dimensions(markdown: str, dimensions: ImageDimensions) -> str:
    return f"{markdown}  \r\n{dimensions.width}x{dimensions.height}"


def hover_payload_to_html(payload: HoverPayload) -> str:
    """Render hover contents as rich text for a Qt tooltip."""
    parts: list[str] = []
    for item in payload.contents:
        head, _, tail = str(item).partition("  \r\n")
        match = _IMAGE_MARKDOWN_RE.match(head)
        if match is None:
            parts.append(html.escape(head))
        else:
            parts.append(
                f'<img src="{html.escape(match.group("src"), quote=True)}" '
                f'height="{match.group("height")}"><br>'
                f"<code>{html.escape(match.group('label'))}</code>"
            )
        if tail:
            parts.append(f"<br>{html.escape(tail)}")
    return "".join(parts)


class HoverResponder:
    """Builds hover payloads for cached annotations.

    ``build_hover`` returns a future that always resolves to a payload or
    ``None``; probe failures fall back to a payload without dimensions.
    """

    def __init__(
        self,
        *,
        host: EditorHost,
        resolver: PositionResolver,
        prober: ImageProber,
        config: ConfigurationSource,
        max_workers: int = 2,
    ) -> None:
        self._host = host
        self._resolver = resolver
        self._prober = prober
        self._config = config
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max(1, int(max_workers)),
            thread_name_prefix="gutterpreview-probe",
        )

    def build_hover(self, document: EditorDocument, position: TextPosition) -> concurrent.futures.Future:
        result: concurrent.futures.Future = concurrent.futures.Future()
        if not host_supports_hover(self._host.version):
            result.set_result(None)
            return result

        record = self._resolver.resolve(document, position)
        if record is None:
            result.set_result(None)
            return result

        max_height = coerce_max_height(self._config.get(document, "imagePreviewMaxHeight", DEFAULT_MAX_HEIGHT))
        markdown = image_markdown(record.original_path, record.display_path, max_height)
        anchor = word_range_at(document.text(), position) or TextRange(position, position)

        def _finish(probe: concurrent.futures.Future) -> None:
            contents = markdown
            if not probe.cancelled():
                try:
                    contents = with_dimensions(markdown, probe.result())
                except Exception as exc:
                    logger.debug("Could not probe %s: %s", record.display_path, exc)
            result.set_result(HoverPayload(contents=[contents], range=anchor))

        try:
            probe = self._executor.submit(self._prober.probe, record.display_path)
        except Exception as exc:
            logger.debug("Could not start probe for %s: %s", record.display_path, exc)
            result.set_result(HoverPayload(contents=[markdown], range=anchor))
            return result
        probe.add_done_callback(_finish)
        return result

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
