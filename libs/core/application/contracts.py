from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol, TypedDict

from libs.core.domain.entities import (
    Alert,
    AuthorizedAd,
    ClassifierVerdict,
    DashboardStats,
    Detection,
    DetectionResult,
    ImageHandle,
)


class UploadPayload(TypedDict):
    """Raw upload received at the intake boundary."""

    file_name: str
    mime_type: str
    byte_size: int
    content: bytes


class DetectionStore(Protocol):
    """Detection, alert, authorized ad and result persistence contract."""

    def insert_detection(self, detection: Detection) -> bool: ...

    def insert_alert(self, alert: Alert) -> None: ...

    def insert_authorized_ad(self, ad: AuthorizedAd) -> Detection: ...

    def insert_result(self, result: DetectionResult) -> None: ...

    def list_detections(self) -> list[Detection]: ...

    def list_alerts(self) -> list[Alert]: ...

    def list_authorized_ads(self) -> list[AuthorizedAd]: ...

    def list_results(self) -> list[DetectionResult]: ...

    def compute_stats(self, now: datetime | None = None) -> DashboardStats: ...

    def atomic(self) -> AbstractContextManager[None]: ...


class Classifier(Protocol):
    """Opaque image classifier contract."""

    async def classify(self, image: ImageHandle) -> ClassifierVerdict: ...


class PreviewRegistry(Protocol):
    """Temporary image handles for uploaded files."""

    def register(self, file_name: str, mime_type: str, content: bytes) -> str: ...

    def revoke(self, uri: str) -> bool: ...
