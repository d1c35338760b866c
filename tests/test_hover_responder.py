"""Tests for HoverResponder and its helpers."""

import pytest

from gutter_preview.preview.annotation_cache import AnnotationCache, AnnotationRecord
from gutter_preview.preview.hover_responder import (
    HoverResponder,
    host_supports_hover,
    hover_payload_to_html,
    image_markdown,
)
from gutter_preview.preview.interfaces import DecorationRenderOptions
from gutter_preview.preview.position_resolver import PositionResolver
from gutter_preview.preview.types import HoverPayload, ImageDimensions, TextPosition, TextRange, word_range_at

TEXT = "look at ![logo](img/logo.png) here"


@pytest.fixture
def cache(renderer, make_document):
    cache = AnnotationCache()
    handle = renderer.create(DecorationRenderOptions(gutter_icon_path="/work/img/logo.png"))
    cache.replace(
        "file:///doc.md",
        [AnnotationRecord(TextRange.from_coords(0, 16, 0, 28), handle, "/work/img/logo.png", "img/logo.png")],
    )
    return cache


def _responder(host, cache, prober, config):
    return HoverResponder(host=host, resolver=PositionResolver(cache), prober=prober, config=config)


class TestBuildHover:
    def test_no_annotation_returns_none(self, host, cache, config, make_prober, make_document):
        prober = make_prober()
        responder = _responder(host, cache, prober, config)

        fut = responder.build_hover(make_document(text=TEXT), TextPosition(0, 2))

        assert fut.result(timeout=2) is None
        assert prober.calls == []
        responder.shutdown()

    def test_payload_with_dimensions(self, host, cache, config, make_prober, make_document):
        prober = make_prober(dimensions=ImageDimensions(32, 16))
        responder = _responder(host, cache, prober, config)

        payload = responder.build_hover(make_document(text=TEXT), TextPosition(0, 20)).result(timeout=2)

        assert isinstance(payload, HoverPayload)
        assert payload.contents == ["![img/logo.png](/work/img/logo.png|height=100)  \r\n32x16"]
        assert prober.calls == ["/work/img/logo.png"]
        assert payload.range == TextRange.from_coords(0, 16, 0, 28)
        responder.shutdown()

    def test_probe_failure_falls_back(self, host, cache, config, make_prober, probe_error, make_document):
        prober = make_prober(error=probe_error("nope", kind="missing"))
        responder = _responder(host, cache, prober, config)

        payload = responder.build_hover(make_document(text=TEXT), TextPosition(0, 20)).result(timeout=2)

        assert payload.contents == ["![img/logo.png](/work/img/logo.png|height=100)"]
        assert payload.range is not None
        responder.shutdown()

    def test_unexpected_probe_error_falls_back(self, host, cache, config, make_prober, make_document):
        prober = make_prober(error=ValueError("corrupt header"))
        responder = _responder(host, cache, prober, config)

        fut = responder.build_hover(make_document(text=TEXT), TextPosition(0, 20))

        assert fut.exception(timeout=2) is None
        assert "img/logo.png" in fut.result().contents[0]
        responder.shutdown()

    def test_negative_max_height_uses_default(self, host, cache, config, make_prober, make_document):
        config.values["imagePreviewMaxHeight"] = -5
        responder = _responder(host, cache, make_prober(), config)

        payload = responder.build_hover(make_document(text=TEXT), TextPosition(0, 20)).result(timeout=2)

        assert "|height=100)" in payload.contents[0]
        responder.shutdown()

    def test_configured_max_height(self, host, cache, config, make_prober, make_document):
        config.values["imagePreviewMaxHeight"] = 240
        responder = _responder(host, cache, make_prober(), config)

        payload = responder.build_hover(make_document(text=TEXT), TextPosition(0, 20)).result(timeout=2)

        assert "|height=240)" in payload.contents[0]
        responder.shutdown()

    def test_old_host_gets_no_hover(self, host, cache, config, make_prober, make_document):
        host._version = "1.7.2"
        prober = make_prober()
        responder = _responder(host, cache, prober, config)

        assert responder.build_hover(make_document(text=TEXT), TextPosition(0, 20)).result(timeout=2) is None
        assert prober.calls == []
        responder.shutdown()

    def test_after_shutdown_falls_back(self, host, cache, config, make_prober, make_document):
        responder = _responder(host, cache, make_prober(), config)
        responder.shutdown()

        payload = responder.build_hover(make_document(text=TEXT), TextPosition(0, 20)).result(timeout=2)

        assert payload.contents == ["![img/logo.png](/work/img/logo.png|height=100)"]


class TestHelpers:
    @pytest.mark.parametrize(
        "version,expected",
        [("1.8.0", True), ("1.7.9", False), ("2.0", True), ("6.5.2", True), ("0.9", False), ("", False), ("dev", False)],
    )
    def test_host_supports_hover(self, version, expected):
        assert host_supports_hover(version) is expected

    def test_word_range_at(self):
        assert word_range_at("a b/c.png d", TextPosition(0, 4)) == TextRange.from_coords(0, 2, 0, 9)
        assert word_range_at("a", TextPosition(3, 0)) is None
        assert word_range_at("(  )", TextPosition(0, 2)) is None

    def test_html_rendering(self):
        payload = HoverPayload(contents=[image_markdown("a<b>.png", "/img/a.png", 80) + "  \r\n10x20"])

        rendered = hover_payload_to_html(payload)

        assert '<img src="/img/a.png" height="80">' in rendered
        assert "a&lt;b&gt;.png" in rendered
        assert rendered.endswith("<br>10x20")
