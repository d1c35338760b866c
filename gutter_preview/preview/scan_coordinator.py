from __future__ import annotations

import concurrent.futures
import logging
import queue
from dataclasses import dataclass
from typing import Any

from PySide6.QtCore import QObject, QTimer, Signal

from gutter_preview.preview.annotation_cache import AnnotationCache, AnnotationRecord, release_records
from gutter_preview.preview.debounce import DebounceScheduler
from gutter_preview.preview.interfaces import (
    ConfigurationSource,
    DecorationRenderer,
    DecorationRenderOptions,
    DecoratorProvider,
    EditorDocument,
    EditorHost,
)
from gutter_preview.preview.types import DocumentSnapshot, ImageInfoResponse
from gutter_preview.settings_schema import PreviewSettings, read_preview_settings


DEFAULT_SCAN_DELAY_MS = 500

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _ScanJob:
    uri: str
    token: int
    document: EditorDocument
    settings: PreviewSettings
    snapshot: DocumentSnapshot


@dataclass(slots=True)
class _ScanResult:
    job: _ScanJob
    response: ImageInfoResponse | None
    error: BaseException | None


class ScanCoordinator(QObject):
    """Runs the decorator provider and keeps the annotation cache in sync.

    Provider calls run on a worker pool; results are applied on the GUI
    thread by a result pump, so the cache is only ever touched from one
    thread. Each scan carries a per-document token and only the result of
    the latest scan started for a document is applied.
    """

    scanCompleted = Signal(str, int)  # uri, record count
    statusMessage = Signal(str)

    def __init__(
        self,
        *,
        host: EditorHost,
        provider: DecoratorProvider,
        renderer: DecorationRenderer,
        config: ConfigurationSource,
        cache: AnnotationCache,
        scheduler: DebounceScheduler | None = None,
        scan_delay_ms: int = DEFAULT_SCAN_DELAY_MS,
        max_workers: int = 4,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._host = host
        self._provider = provider
        self._renderer = renderer
        self._config = config
        self._cache = cache
        self._scheduler = scheduler if scheduler is not None else DebounceScheduler(self)
        self._scan_delay_ms = max(0, int(scan_delay_ms))

        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max(1, int(max_workers)),
            thread_name_prefix="gutterpreview-scan",
        )
        self._active_futures: set[concurrent.futures.Future] = set()
        self._result_queue: queue.Queue[_ScanResult] = queue.Queue()
        self._result_pump = QTimer(self)
        self._result_pump.setInterval(25)
        self._result_pump.timeout.connect(self._drain_result_queue)

        self._latest_token_by_uri: dict[str, int] = {}
        self._closed = False

    @property
    def cache(self) -> AnnotationCache:
        return self._cache

    @property
    def scheduler(self) -> DebounceScheduler:
        return self._scheduler

    # ---------- Public API ----------

    def request_scan(self, document: EditorDocument | None, delay_ms: int | None = None) -> None:
        if document is None or self._closed:
            return
        if delay_ms is None:
            delay_ms = self._scan_delay_ms
        uri = str(document.uri or "")
        if not uri:
            return
        self._scheduler.schedule(uri, delay_ms, lambda doc=document: self.scan(doc))

    def cancel_pending(self, uri: str) -> None:
        self._scheduler.cancel(uri)

    def scan(self, document: EditorDocument) -> None:
        if self._closed:
            return
        uri = str(document.uri or "")
        views = self._host.editors_for_document(document)
        if not views:
            # Detached documents keep their last known annotations.
            logger.debug("Skipping scan of %s: no visible editors", uri)
            return

        settings = read_preview_settings(self._config, document)
        snapshot = DocumentSnapshot(
            uri=uri,
            text=document.text(),
            file_path=document.file_path,
            version=document.version,
            workspace_folders=tuple(self._host.workspace_folders()),
            source_folder=settings.source_folder,
        )
        job = _ScanJob(
            uri=uri,
            token=self._next_token(uri),
            document=document,
            settings=settings,
            snapshot=snapshot,
        )
        self._start_worker(job)

    def invalidate(self, uri: str) -> None:
        """Drop the result of any scan of ``uri`` that is still in flight."""
        self._next_token(uri)

    def shutdown(self) -> None:
        self._closed = True
        self._scheduler.cancel_all()
        self._result_pump.stop()
        for fut in list(self._active_futures):
            fut.cancel()
        self._active_futures.clear()
        self._executor.shutdown(wait=False, cancel_futures=True)
        while True:
            try:
                self._result_queue.get_nowait()
            except queue.Empty:
                break

    # ---------- Scheduling ----------

    def _start_worker(self, job: _ScanJob) -> None:
        try:
            future = self._executor.submit(self._provider.provide, job.snapshot)
        except RuntimeError:
            logger.debug("Scan executor is closed; dropping scan of %s", job.uri)
            return
        self._active_futures.add(future)
        future.add_done_callback(lambda fut, j=job: self._queue_future_result(j, fut))
        if not self._result_pump.isActive():
            self._result_pump.start()

    def _queue_future_result(self, job: _ScanJob, future: concurrent.futures.Future) -> None:
        if not future.cancelled():
            error = future.exception()
            response = None if error is not None else future.result()
            self._result_queue.put(_ScanResult(job=job, response=response, error=error))
        self._active_futures.discard(future)

    def _drain_result_queue(self) -> None:
        while True:
            try:
                result = self._result_queue.get_nowait()
            except queue.Empty:
                break
            try:
                self._apply_result(result)
            except Exception:
                # Scan failures should never crash the UI.
                logger.exception("Applying scan result for %s failed", result.job.uri)
        if not self._active_futures and self._result_queue.empty():
            self._result_pump.stop()

    def _apply_result(self, result: _ScanResult) -> None:
        job = result.job
        if job.token != self._latest_token_by_uri.get(job.uri, 0):
            logger.debug("Dropping stale scan result for %s", job.uri)
            return

        records: list[AnnotationRecord] = []
        views = self._host.editors_for_document(job.document)
        if result.error is not None:
            logger.debug("Decorator provider failed for %s: %s", job.uri, result.error)
        elif not isinstance(result.response, ImageInfoResponse):
            logger.debug("Decorator provider returned no response for %s", job.uri)
        elif views:
            try:
                records = self._synthesize(job, result.response, views)
            except Exception:
                logger.exception("Could not create decorations for %s", job.uri)
                records = []

        self._cache.replace(job.uri, records)
        if records:
            label = job.snapshot.file_path or job.uri
            self.statusMessage.emit(f"Image previews: {len(result.response.images)} in {label}")
        self.scanCompleted.emit(job.uri, len(records))

    def _synthesize(self, job: _ScanJob, response: ImageInfoResponse, views: list[Any]) -> list[AnnotationRecord]:
        settings = job.settings
        text_decoration = "underline" if settings.show_underline else "none"
        records: list[AnnotationRecord] = []
        try:
            for image in response.images:
                for view in views:
                    handle = self._renderer.create(
                        DecorationRenderOptions(
                            gutter_icon_path=image.display_path,
                            gutter_icon_size="contain",
                            text_decoration=text_decoration,
                        )
                    )
                    records.append(
                        AnnotationRecord(
                            range=image.range,
                            handle=handle,
                            display_path=image.display_path,
                            original_path=image.original_path,
                            editor_id=str(getattr(view, "editor_id", "") or ""),
                        )
                    )
                    if settings.show_image_preview_on_gutter:
                        handle.attach(view, [image.range])
        except Exception:
            release_records(records)
            raise
        return records

    # ---------- Helpers ----------

    def _next_token(self, uri: str) -> int:
        token = self._latest_token_by_uri.get(uri, 0) + 1
        self._latest_token_by_uri[uri] = token
        return token
