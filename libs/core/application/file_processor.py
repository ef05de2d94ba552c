"""State machine that drives one uploaded file from intake to a terminal state."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import uuid4

from libs.core.application.contracts import Classifier, DetectionStore
from libs.core.domain.entities import (
    DETECTION_STATUSES,
    STATUS_AUTHORIZED,
    STATUS_UNAUTHORIZED,
    Alert,
    AuthorizedAd,
    ClassifierVerdict,
    Detection,
    DetectionResult,
    ImageHandle,
)
from libs.core.domain.errors import (
    ClassificationFailed,
    InvalidTransition,
    PersistenceFailed,
)

logger = logging.getLogger(__name__)

STATE_QUEUED = "queued"
STATE_UPLOADING = "uploading"
STATE_PROCESSING = "processing"
STATE_COMPLETED = "completed"
STATE_ERRORED = "errored"
TERMINAL_STATES = frozenset({STATE_COMPLETED, STATE_ERRORED})

_TRANSITIONS: dict[str, frozenset[str]] = {
    STATE_QUEUED: frozenset({STATE_UPLOADING, STATE_ERRORED}),
    STATE_UPLOADING: frozenset({STATE_PROCESSING, STATE_ERRORED}),
    STATE_PROCESSING: frozenset({STATE_COMPLETED, STATE_ERRORED}),
    STATE_COMPLETED: frozenset(),
    STATE_ERRORED: frozenset(),
}

PROGRESS_COMPLETE = 100
DEFAULT_PROGRESS_STEP = 10
DEFAULT_PROGRESS_INTERVAL_SEC = 0.1
DEFAULT_CLASSIFY_TIMEOUT_SEC = 10.0
HIGH_PRIORITY_CONFIDENCE = 0.9
MEDIUM_PRIORITY_CONFIDENCE = 0.8
SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class FileSnapshot:
    """Point-in-time view of a file's progress through the pipeline."""

    file_id: str
    file_name: str
    state: str
    progress: int
    preview_uri: str
    detection: Optional[Detection] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


ProgressListener = Callable[[FileSnapshot], None]


class FileProcessor:
    """Runs upload progress, classification and persistence for one file.

    States move ``queued -> uploading -> processing -> completed|errored``.
    Terminal states are final; progress never decreases while uploading.
    Failures stay scoped to this file and are reported through ``error``.
    """

    def __init__(
        self,
        file_id: str,
        image: ImageHandle,
        classifier: Classifier,
        store: DetectionStore,
        progress_step: int = DEFAULT_PROGRESS_STEP,
        progress_interval_sec: float = DEFAULT_PROGRESS_INTERVAL_SEC,
        classify_timeout_sec: float = DEFAULT_CLASSIFY_TIMEOUT_SEC,
        listener: ProgressListener | None = None,
    ) -> None:
        if progress_step <= 0:
            raise ValueError("progress_step must be positive")
        self.file_id = file_id
        self.image = image
        self._classifier = classifier
        self._store = store
        self._progress_step = progress_step
        self._progress_interval_sec = progress_interval_sec
        self._classify_timeout_sec = classify_timeout_sec
        self._listener = listener
        self._state = STATE_QUEUED
        self._progress = 0
        self._detection: Detection | None = None
        self._error: str | None = None
        self._cancelled = False

    @property
    def state(self) -> str:
        return self._state

    @property
    def progress(self) -> int:
        return self._progress

    def snapshot(self) -> FileSnapshot:
        return FileSnapshot(
            file_id=self.file_id,
            file_name=self.image.file_name,
            state=self._state,
            progress=self._progress,
            preview_uri=self.image.uri,
            detection=self._detection,
            error=self._error,
        )

    def cancel(self) -> None:
        """Stop progress updates; nothing is persisted after this call."""
        self._cancelled = True

    async def run(self) -> FileSnapshot:
        self._transition(STATE_UPLOADING)
        await self._report_upload_progress()
        if self._cancelled:
            return self.snapshot()

        self._transition(STATE_PROCESSING)
        try:
            verdict = await self._classify()
        except ClassificationFailed as error:
            logger.error(f"Classification failed for {self.image.file_name}: {error}")
            self._fail(str(error))
            return self.snapshot()

        if self._cancelled:
            return self.snapshot()

        try:
            detection = self._persist(verdict)
        except PersistenceFailed as error:
            self._fail(str(error))
            return self.snapshot()

        self._detection = detection
        self._transition(STATE_COMPLETED)
        logger.info(
            f"{self.image.file_name} classified {verdict.status} "
            f"({detection.confidence}) as {detection.detection_id}"
        )
        return self.snapshot()

    async def _report_upload_progress(self) -> None:
        for value in range(0, PROGRESS_COMPLETE + 1, self._progress_step):
            if self._cancelled:
                return
            self._set_progress(value)
            await asyncio.sleep(self._progress_interval_sec)
        if not self._cancelled and self._progress < PROGRESS_COMPLETE:
            self._set_progress(PROGRESS_COMPLETE)

    async def _classify(self) -> ClassifierVerdict:
        try:
            verdict = await asyncio.wait_for(
                self._classifier.classify(self.image),
                timeout=self._classify_timeout_sec,
            )
        except asyncio.TimeoutError as error:
            raise ClassificationFailed(
                f"classifier timed out after {self._classify_timeout_sec}s"
            ) from error
        except Exception as error:
            raise ClassificationFailed(f"classifier failed: {error}") from error

        _validate_verdict(verdict)
        return verdict

    def _persist(self, verdict: ClassifierVerdict) -> Detection:
        """Write the outcome; either every record lands or none does."""
        timestamp = _utc_now_iso()
        try:
            with self._store.atomic():
                if verdict.status == STATUS_AUTHORIZED:
                    detection = self._store.insert_authorized_ad(
                        AuthorizedAd(
                            ad_id=str(uuid4()),
                            text=verdict.label,
                            added_by=SYSTEM_ACTOR,
                            date_added=timestamp,
                            active=True,
                            image_uri=self.image.uri,
                        )
                    )
                else:
                    detection = self._build_detection(verdict, timestamp)
                    self._store.insert_alert(
                        Alert(
                            alert_id=str(uuid4()),
                            detection=detection,
                            alert_type=alert_type_for_status(verdict.status),
                            priority=priority_for_confidence(
                                verdict.confidence_fraction
                            ),
                            timestamp=timestamp,
                        )
                    )
                self._store.insert_result(
                    DetectionResult(
                        result_id=str(uuid4()),
                        detection=detection,
                        result=verdict.status,
                        timestamp=timestamp,
                    )
                )
        except Exception as error:
            logger.exception(f"Failed to store detection results for {self.file_id}")
            raise PersistenceFailed(
                f"failed to store detection results: {error}"
            ) from error
        return detection

    def _build_detection(self, verdict: ClassifierVerdict, timestamp: str) -> Detection:
        return Detection(
            detection_id=f"det_{uuid4().hex}",
            image_uri=self.image.uri,
            text=verdict.label,
            confidence=f"{verdict.confidence_percent}%",
            confidence_score=verdict.confidence_fraction,
            status=verdict.status,
            timestamp=timestamp,
            regions=tuple(verdict.regions),
            location=verdict.location,
        )

    def _set_progress(self, value: int) -> None:
        if self._state != STATE_UPLOADING or value < self._progress:
            return
        self._progress = min(value, PROGRESS_COMPLETE)
        self._notify()

    def _fail(self, reason: str) -> None:
        self._error = reason
        self._transition(STATE_ERRORED)

    def _transition(self, new_state: str) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            raise InvalidTransition(
                f"file {self.file_id} cannot move from {self._state} to {new_state}"
            )
        logger.debug(f"File {self.file_id}: {self._state} -> {new_state}")
        self._state = new_state
        self._notify()

    def _notify(self) -> None:
        if self._listener is not None:
            self._listener(self.snapshot())


def alert_type_for_status(status: str) -> str:
    if status == STATUS_UNAUTHORIZED:
        return "violation"
    return "suspicious"


def priority_for_confidence(confidence: float) -> str:
    if confidence >= HIGH_PRIORITY_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_PRIORITY_CONFIDENCE:
        return "medium"
    return "low"


def _validate_verdict(verdict: ClassifierVerdict) -> None:
    if not isinstance(verdict, ClassifierVerdict):
        raise ClassificationFailed(
            f"classifier returned {type(verdict).__name__}, expected a verdict"
        )
    try:
        status_ok = verdict.status in DETECTION_STATUSES
        percent_ok = 0 <= verdict.confidence_percent <= 100
        fraction_ok = 0.0 <= verdict.confidence_fraction <= 1.0
    except TypeError as error:
        raise ClassificationFailed(f"malformed verdict: {error}") from error
    if not status_ok:
        raise ClassificationFailed(f"unknown verdict status {verdict.status!r}")
    if not percent_ok:
        raise ClassificationFailed(
            f"confidence percent out of range: {verdict.confidence_percent}"
        )
    if not fraction_ok:
        raise ClassificationFailed(
            f"confidence fraction out of range: {verdict.confidence_fraction}"
        )


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
