"""In-memory storage for detections, alerts, authorized ads and results."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime

from libs.core.domain.entities import (
    STATUS_AUTHORIZED,
    Alert,
    AuthorizedAd,
    DashboardStats,
    Detection,
    DetectionResult,
)
from libs.core.domain.stats import DEFAULT_TREND_DAYS, build_dashboard_stats

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE_URI = "https://picsum.photos/800/600"


@dataclass
class _Marks:
    detections: int
    alerts: int
    authorized_ads: int
    results: int


@dataclass
class InMemoryDatabase:
    """Append-only collections, ordered by insertion."""

    detections: list[Detection] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)
    authorized_ads: list[AuthorizedAd] = field(default_factory=list)
    results: list[DetectionResult] = field(default_factory=list)
    detection_ids: set[str] = field(default_factory=set)

    def clear(self) -> None:
        self.detections.clear()
        self.alerts.clear()
        self.authorized_ads.clear()
        self.results.clear()
        self.detection_ids.clear()

    def marks(self) -> _Marks:
        return _Marks(
            detections=len(self.detections),
            alerts=len(self.alerts),
            authorized_ads=len(self.authorized_ads),
            results=len(self.results),
        )

    def truncate(self, marks: _Marks) -> None:
        for detection in self.detections[marks.detections :]:
            self.detection_ids.discard(detection.detection_id)
        del self.detections[marks.detections :]
        del self.alerts[marks.alerts :]
        del self.authorized_ads[marks.authorized_ads :]
        del self.results[marks.results :]


class InMemoryDetectionStore:
    """Detection store keeping every alert and result linked to a detection.

    A detection whose id is already stored is ignored, so the first
    attributes recorded under an id win.
    """

    def __init__(
        self,
        db: InMemoryDatabase,
        trend_days: int = DEFAULT_TREND_DAYS,
    ) -> None:
        self._db = db
        self._trend_days = trend_days

    def insert_detection(self, detection: Detection) -> bool:
        if detection.detection_id in self._db.detection_ids:
            logger.debug(f"Detection {detection.detection_id} already stored")
            return False
        self._db.detections.append(detection)
        self._db.detection_ids.add(detection.detection_id)
        return True

    def insert_alert(self, alert: Alert) -> None:
        self.insert_detection(alert.detection)
        self._db.alerts.append(alert)

    def insert_authorized_ad(self, ad: AuthorizedAd) -> Detection:
        self._db.authorized_ads.append(ad)
        detection = Detection(
            detection_id=ad.ad_id,
            image_uri=ad.image_uri or PLACEHOLDER_IMAGE_URI,
            text=ad.text,
            confidence="100%",
            confidence_score=1.0,
            status=STATUS_AUTHORIZED,
            timestamp=ad.date_added,
        )
        self.insert_detection(detection)
        return detection

    def insert_result(self, result: DetectionResult) -> None:
        self.insert_detection(result.detection)
        self._db.results.append(result)

    def list_detections(self) -> list[Detection]:
        return list(self._db.detections)

    def list_alerts(self) -> list[Alert]:
        return list(self._db.alerts)

    def list_authorized_ads(self) -> list[AuthorizedAd]:
        return list(self._db.authorized_ads)

    def list_results(self) -> list[DetectionResult]:
        return list(self._db.results)

    def compute_stats(self, now: datetime | None = None) -> DashboardStats:
        return build_dashboard_stats(
            detections=self._db.detections,
            alerts=self._db.alerts,
            now=now,
            trend_days=self._trend_days,
        )

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Discard everything appended inside the block if it raises."""
        marks = self._db.marks()
        try:
            yield
        except Exception:
            self._db.truncate(marks)
            logger.warning("Rolled back partial detection store writes")
            raise
