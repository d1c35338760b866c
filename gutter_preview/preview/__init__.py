"""Annotation cache, scan scheduling and hover lookup for image previews."""

from __future__ import annotations

from dataclasses import dataclass

from PySide6.QtCore import QObject

from gutter_preview.preview.annotation_cache import AnnotationCache, AnnotationRecord
from gutter_preview.preview.debounce import DebounceScheduler
from gutter_preview.preview.hover_responder import HoverResponder
from gutter_preview.preview.interfaces import (
    ConfigurationSource,
    DecorationRenderer,
    DecoratorProvider,
    EditorHost,
    ImageProber,
)
from gutter_preview.preview.lifecycle import LifecycleBridge
from gutter_preview.preview.position_resolver import PositionResolver
from gutter_preview.preview.scan_coordinator import DEFAULT_SCAN_DELAY_MS, ScanCoordinator


@dataclass(slots=True)
class GutterPreview:
    """One activated preview session; everything it owns lives until ``deactivate``."""

    cache: AnnotationCache
    scheduler: DebounceScheduler
    coordinator: ScanCoordinator
    resolver: PositionResolver
    hover: HoverResponder
    bridge: LifecycleBridge

    def deactivate(self) -> None:
        self.bridge.deactivate()
        self.coordinator.shutdown()
        self.hover.shutdown()
        self.cache.clear_all()


def activate(
    *,
    host: EditorHost,
    provider: DecoratorProvider,
    renderer: DecorationRenderer,
    prober: ImageProber,
    config: ConfigurationSource,
    scan_delay_ms: int = DEFAULT_SCAN_DELAY_MS,
    parent: QObject | None = None,
) -> GutterPreview:
    cache = AnnotationCache()
    scheduler = DebounceScheduler(parent)
    coordinator = ScanCoordinator(
        host=host,
        provider=provider,
        renderer=renderer,
        config=config,
        cache=cache,
        scheduler=scheduler,
        scan_delay_ms=scan_delay_ms,
        parent=parent,
    )
    resolver = PositionResolver(cache)
    hover = HoverResponder(host=host, resolver=resolver, prober=prober, config=config)
    bridge = LifecycleBridge(host=host, coordinator=coordinator, cache=cache, parent=parent)
    bridge.activate()
    return GutterPreview(
        cache=cache,
        scheduler=scheduler,
        coordinator=coordinator,
        resolver=resolver,
        hover=hover,
        bridge=bridge,
    )


__all__ = [
    "DEFAULT_SCAN_DELAY_MS",
    "AnnotationCache",
    "AnnotationRecord",
    "GutterPreview",
    "HoverResponder",
    "LifecycleBridge",
    "PositionResolver",
    "ScanCoordinator",
    "activate",
]
