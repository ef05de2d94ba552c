from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from libs.core.application.contracts import (
    Classifier,
    DetectionStore,
    PreviewRegistry,
    UploadPayload,
)
from libs.core.application.file_processor import (
    DEFAULT_CLASSIFY_TIMEOUT_SEC,
    DEFAULT_PROGRESS_INTERVAL_SEC,
    DEFAULT_PROGRESS_STEP,
    STATE_COMPLETED,
    FileProcessor,
    FileSnapshot,
)
from libs.core.application.intake import MAX_UPLOAD_BYTES, validate_upload
from libs.core.domain.entities import (
    Alert,
    AuthorizedAd,
    DashboardStats,
    Detection,
    DetectionResult,
    ImageHandle,
)
from libs.core.domain.errors import IntakeRejected

logger = logging.getLogger(__name__)


@dataclass
class PipelineSettings:
    """Tuning knobs for per-file processing."""

    progress_step: int = DEFAULT_PROGRESS_STEP
    progress_interval_sec: float = DEFAULT_PROGRESS_INTERVAL_SEC
    classify_timeout_sec: float = DEFAULT_CLASSIFY_TIMEOUT_SEC
    max_upload_bytes: int = MAX_UPLOAD_BYTES


@dataclass
class RejectedUpload:
    file_name: str
    reason: str


@dataclass
class BatchReceipt:
    """Outcome of intake for a batch of uploads."""

    accepted: list[FileSnapshot] = field(default_factory=list)
    rejected: list[RejectedUpload] = field(default_factory=list)


class PipelineCoordinator:
    """Fans uploads out to independent file processors and exposes store reads."""

    def __init__(
        self,
        store: DetectionStore,
        classifier: Classifier,
        previews: PreviewRegistry,
        settings: PipelineSettings | None = None,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._previews = previews
        self._settings = settings or PipelineSettings()
        self._processors: dict[str, FileProcessor] = {}
        self._tasks: dict[str, asyncio.Task[FileSnapshot]] = {}

    def submit(self, upload: UploadPayload) -> FileSnapshot:
        """Validate one upload and start processing it.

        Must be called from a running event loop. Raises IntakeRejected
        before any processing state is created.
        """
        try:
            validate_upload(upload, max_bytes=self._settings.max_upload_bytes)
        except IntakeRejected as error:
            logger.warning(f"Upload rejected: {error}")
            raise

        loop = asyncio.get_running_loop()
        file_id = f"file_{uuid4().hex}"
        image = ImageHandle(
            uri=self._previews.register(
                file_name=upload["file_name"],
                mime_type=upload["mime_type"],
                content=upload["content"],
            ),
            file_name=upload["file_name"],
            mime_type=upload["mime_type"],
            byte_size=upload["byte_size"],
        )
        processor = FileProcessor(
            file_id=file_id,
            image=image,
            classifier=self._classifier,
            store=self._store,
            progress_step=self._settings.progress_step,
            progress_interval_sec=self._settings.progress_interval_sec,
            classify_timeout_sec=self._settings.classify_timeout_sec,
            listener=_log_progress,
        )
        self._processors[file_id] = processor
        task = loop.create_task(processor.run(), name=f"process-{file_id}")
        task.add_done_callback(_log_task_failure)
        self._tasks[file_id] = task
        logger.info(f"Accepted {image.file_name} as {file_id}")
        return processor.snapshot()

    def submit_batch(self, uploads: list[UploadPayload]) -> BatchReceipt:
        receipt = BatchReceipt()
        for upload in uploads:
            try:
                receipt.accepted.append(self.submit(upload))
            except IntakeRejected as error:
                receipt.rejected.append(
                    RejectedUpload(file_name=error.file_name, reason=error.reason)
                )
        return receipt

    def list_files(self) -> list[FileSnapshot]:
        return [processor.snapshot() for processor in self._processors.values()]

    def get_file(self, file_id: str) -> FileSnapshot | None:
        processor = self._processors.get(file_id)
        if processor is None:
            return None
        return processor.snapshot()

    def remove(self, file_id: str) -> bool:
        """Drop a file from the view, cancelling it if still running.

        Records of a completed file stay in the store, and so does the preview
        its detection points at. Those previews are held for the life of the
        process, so the registry grows with every completed upload.
        """
        processor = self._processors.pop(file_id, None)
        if processor is None:
            return False

        processor.cancel()
        task = self._tasks.pop(file_id, None)
        if task is not None and not task.done():
            task.cancel()
        if processor.state != STATE_COMPLETED:
            self._previews.revoke(processor.image.uri)
        logger.info(f"Removed {file_id} in state {processor.state}")
        return True

    async def wait_all(self) -> list[FileSnapshot]:
        """Wait until every scheduled file has finished or been cancelled."""
        pending = [task for task in self._tasks.values() if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        return self.list_files()

    def list_detections(self) -> list[Detection]:
        return self._store.list_detections()

    def list_alerts(self) -> list[Alert]:
        return self._store.list_alerts()

    def list_authorized_ads(self) -> list[AuthorizedAd]:
        return self._store.list_authorized_ads()

    def list_results(self) -> list[DetectionResult]:
        return self._store.list_results()

    def compute_stats(self, now: datetime | None = None) -> DashboardStats:
        return self._store.compute_stats(now=now)


def _log_progress(snapshot: FileSnapshot) -> None:
    logger.debug(
        f"{snapshot.file_id} {snapshot.state} progress={snapshot.progress}"
    )


def _log_task_failure(task: asyncio.Task[FileSnapshot]) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Task {task.get_name()} crashed: {error!r}")
