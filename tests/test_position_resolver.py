"""Tests for PositionResolver."""

from gutter_preview.preview.annotation_cache import AnnotationCache, AnnotationRecord
from gutter_preview.preview.interfaces import DecorationRenderOptions
from gutter_preview.preview.position_resolver import PositionResolver
from gutter_preview.preview.types import TextPosition, TextRange


def _record(renderer, start, end, name):
    handle = renderer.create(DecorationRenderOptions(gutter_icon_path=f"/img/{name}"))
    return AnnotationRecord(TextRange.from_coords(0, start, 0, end), handle, f"/img/{name}", name)


class TestPositionResolver:
    def test_resolves_containing_record(self, renderer, make_document):
        cache = AnnotationCache()
        doc = make_document()
        first = _record(renderer, 0, 5, "first.png")
        second = _record(renderer, 10, 15, "second.png")
        cache.replace(doc.uri, [first, second])
        resolver = PositionResolver(cache)

        assert resolver.resolve(doc, TextPosition(0, 7)) is None
        assert resolver.resolve(doc, TextPosition(0, 3)) is first
        assert resolver.resolve(doc, TextPosition(0, 12)) is second

    def test_range_bounds_are_inclusive(self, renderer, make_document):
        cache = AnnotationCache()
        doc = make_document()
        record = _record(renderer, 4, 9, "a.png")
        cache.replace(doc.uri, [record])
        resolver = PositionResolver(cache)

        assert resolver.resolve(doc, TextPosition(0, 4)) is record
        assert resolver.resolve(doc, TextPosition(0, 9)) is record
        assert resolver.resolve(doc, TextPosition(1, 5)) is None

    def test_overlap_returns_first_inserted(self, renderer, make_document):
        cache = AnnotationCache()
        doc = make_document()
        outer = _record(renderer, 0, 20, "outer.png")
        inner = _record(renderer, 5, 10, "inner.png")
        cache.replace(doc.uri, [outer, inner])

        assert PositionResolver(cache).resolve(doc, TextPosition(0, 7)) is outer

    def test_unknown_document(self, make_document):
        cache = AnnotationCache()
        doc = make_document(uri="file:///unknown.md")

        assert PositionResolver(cache).resolve(doc, TextPosition(0, 0)) is None
        assert doc.uri not in cache
