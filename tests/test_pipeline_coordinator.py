"""Pipeline coordinator fan-out, cancellation and read-through tests."""

import asyncio

import pytest

from libs.core.application.contracts import UploadPayload
from libs.core.application.file_processor import (
    STATE_COMPLETED,
    STATE_ERRORED,
    STATE_PROCESSING,
)
from libs.core.application.pipeline_coordinator import (
    PipelineCoordinator,
    PipelineSettings,
)
from libs.core.domain.entities import ClassifierVerdict, ImageHandle
from libs.core.domain.errors import IntakeRejected
from services.api_gateway.infrastructure.memory_store import (
    InMemoryDatabase,
    InMemoryDetectionStore,
)
from services.api_gateway.infrastructure.preview_registry import (
    InMemoryPreviewRegistry,
)


class _ByNameClassifier:
    """Authorizes files whose name starts with 'ok', blocks on 'slow'."""

    def __init__(self) -> None:
        self.gate: asyncio.Event | None = None

    async def classify(self, image: ImageHandle) -> ClassifierVerdict:
        if image.file_name.startswith("slow"):
            assert self.gate is not None
            await self.gate.wait()
        if image.file_name.startswith("ok"):
            return ClassifierVerdict("Authorized", 88, 0.88, "Authorized Advertisement")
        if image.file_name.startswith("hang"):
            await asyncio.sleep(5)
        return ClassifierVerdict(
            "Unauthorized", 91, 0.91, "Potential Unauthorized Advertisement"
        )


def _upload(
    file_name: str,
    mime_type: str = "image/png",
    content: bytes = b"\x89PNG-bytes",
) -> UploadPayload:
    return {
        "file_name": file_name,
        "mime_type": mime_type,
        "byte_size": len(content),
        "content": content,
    }


def _coordinator(
    classifier: _ByNameClassifier | None = None,
    previews: InMemoryPreviewRegistry | None = None,
    classify_timeout_sec: float = 1.0,
) -> PipelineCoordinator:
    return PipelineCoordinator(
        store=InMemoryDetectionStore(InMemoryDatabase()),
        classifier=classifier or _ByNameClassifier(),
        previews=previews or InMemoryPreviewRegistry(),
        settings=PipelineSettings(
            progress_interval_sec=0.0,
            classify_timeout_sec=classify_timeout_sec,
            max_upload_bytes=1024,
        ),
    )


def _preview_id(uri: str) -> str:
    return uri.rsplit("/", 1)[-1]


async def _wait_for_state(
    coordinator: PipelineCoordinator,
    file_id: str,
    state: str,
) -> None:
    for _ in range(500):
        snapshot = coordinator.get_file(file_id)
        if snapshot is not None and snapshot.state == state:
            return
        await asyncio.sleep(0.002)
    raise AssertionError(f"{file_id} never reached {state}")


def test_batch_processes_files_independently() -> None:
    coordinator = _coordinator()

    async def scenario() -> list:
        receipt = coordinator.submit_batch(
            [_upload("ok-1.png"), _upload("bad-1.png"), _upload("ok-2.png")]
        )
        assert len(receipt.accepted) == 3
        assert receipt.rejected == []
        return await coordinator.wait_all()

    snapshots = asyncio.run(scenario())

    assert [item.state for item in snapshots] == [STATE_COMPLETED] * 3
    assert len(coordinator.list_authorized_ads()) == 2
    assert len(coordinator.list_alerts()) == 1
    assert len(coordinator.list_results()) == 3
    assert len(coordinator.list_detections()) == 3

    detection_ids = {item.detection_id for item in coordinator.list_detections()}
    for alert in coordinator.list_alerts():
        assert alert.detection.detection_id in detection_ids
    for result in coordinator.list_results():
        assert result.detection.detection_id in detection_ids


def test_batch_reports_rejected_files() -> None:
    coordinator = _coordinator()

    async def scenario():
        receipt = coordinator.submit_batch(
            [
                _upload("ok.png"),
                _upload("notes.txt", mime_type="text/plain"),
                _upload("huge.png", content=b"x" * 2048),
            ]
        )
        await coordinator.wait_all()
        return receipt

    receipt = asyncio.run(scenario())

    assert len(receipt.accepted) == 1
    assert [item.file_name for item in receipt.rejected] == ["notes.txt", "huge.png"]
    assert "unsupported type" in receipt.rejected[0].reason
    assert len(coordinator.list_files()) == 1


def test_rejected_upload_creates_no_state() -> None:
    coordinator = _coordinator()

    async def scenario() -> None:
        with pytest.raises(IntakeRejected):
            coordinator.submit(_upload("doc.pdf", mime_type="application/pdf"))

    asyncio.run(scenario())

    assert coordinator.list_files() == []
    assert coordinator.list_detections() == []


def test_submit_requires_running_event_loop() -> None:
    coordinator = _coordinator()

    with pytest.raises(RuntimeError):
        coordinator.submit(_upload("ok.png"))

    assert coordinator.list_files() == []


def test_timeout_is_scoped_to_one_file() -> None:
    coordinator = _coordinator(classify_timeout_sec=0.05)

    async def scenario() -> None:
        coordinator.submit(_upload("hang.png"))
        coordinator.submit(_upload("ok.png"))
        await coordinator.wait_all()

    asyncio.run(scenario())

    states = {item.file_name: item for item in coordinator.list_files()}
    assert states["hang.png"].state == STATE_ERRORED
    assert "timed out" in states["hang.png"].error
    assert states["ok.png"].state == STATE_COMPLETED
    assert len(coordinator.list_detections()) == 1
    assert coordinator.list_alerts() == []


def test_remove_cancels_one_file_and_releases_preview() -> None:
    classifier = _ByNameClassifier()
    previews = InMemoryPreviewRegistry()
    coordinator = _coordinator(classifier=classifier, previews=previews)

    async def scenario():
        classifier.gate = asyncio.Event()
        removed = coordinator.submit(_upload("slow-removed.png"))
        kept = coordinator.submit(_upload("slow-kept.png"))
        await _wait_for_state(coordinator, removed.file_id, STATE_PROCESSING)
        await _wait_for_state(coordinator, kept.file_id, STATE_PROCESSING)

        assert coordinator.remove(removed.file_id) is True

        classifier.gate.set()
        await coordinator.wait_all()
        return removed, kept

    removed, kept = asyncio.run(scenario())

    assert coordinator.get_file(removed.file_id) is None
    assert previews.get(_preview_id(removed.preview_uri)) is None

    finished = coordinator.get_file(kept.file_id)
    assert finished is not None and finished.state == STATE_COMPLETED
    assert finished.is_terminal
    assert previews.get(_preview_id(kept.preview_uri)) is not None
    assert len(coordinator.list_results()) == 1
    assert len(coordinator.list_detections()) == 1


def test_remove_completed_file_keeps_records_and_preview() -> None:
    previews = InMemoryPreviewRegistry()
    coordinator = _coordinator(previews=previews)

    async def scenario() -> str:
        snapshot = coordinator.submit(_upload("bad.png"))
        await coordinator.wait_all()
        return snapshot.file_id

    file_id = asyncio.run(scenario())
    detection = coordinator.get_file(file_id).detection

    assert coordinator.remove(file_id) is True
    assert coordinator.remove(file_id) is False
    assert coordinator.list_files() == []
    assert len(coordinator.list_alerts()) == 1
    assert previews.get(_preview_id(detection.image_uri)) is not None


def test_remove_unknown_file_returns_false() -> None:
    assert _coordinator().remove("file_missing") is False


def test_read_through_stats_reflect_writes() -> None:
    coordinator = _coordinator()

    async def scenario() -> None:
        coordinator.submit(_upload("bad-1.png"))
        coordinator.submit(_upload("bad-2.png"))
        coordinator.submit(_upload("ok.png"))
        await coordinator.wait_all()

    asyncio.run(scenario())
    stats = coordinator.compute_stats()

    assert stats.total_detections == 3
    assert stats.unauthorized_ads == 2
    assert stats.alerts_today == 2
    assert stats.trends[-1].violations == 2
