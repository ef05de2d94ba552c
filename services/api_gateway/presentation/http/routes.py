from dataclasses import asdict
from typing import Any, Literal

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from libs.core.application.contracts import UploadPayload
from libs.core.application.file_processor import FileSnapshot
from libs.core.domain.entities import (
    Alert,
    AuthorizedAd,
    DashboardStats,
    Detection,
    DetectionResult,
)
from services.api_gateway.dependencies import get_coordinator, get_previews

router = APIRouter()


class FileStatusResponse(BaseModel):
    file_id: str
    file_name: str
    state: str
    progress: int = Field(ge=0, le=100)
    preview_uri: str
    detection: dict[str, Any] | None = None
    error: str | None = None


class RejectedFileResponse(BaseModel):
    file_name: str
    reason: str


class UploadBatchResponse(BaseModel):
    accepted: list[FileStatusResponse] = Field(default_factory=list)
    rejected: list[RejectedFileResponse] = Field(default_factory=list)


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready")
def ready() -> dict[str, str]:
    return {"status": "ready"}


@router.get("/version")
def version() -> dict[str, str]:
    return {"version": "0.1.0"}


@router.post("/v1/uploads", status_code=202, response_model=UploadBatchResponse)
async def upload_images(files: list[UploadFile] = File(...)) -> UploadBatchResponse:
    uploads: list[UploadPayload] = []
    for item in files:
        content = await item.read()
        uploads.append(
            {
                "file_name": item.filename or "",
                "mime_type": item.content_type or "",
                "byte_size": len(content),
                "content": content,
            }
        )

    receipt = get_coordinator().submit_batch(uploads)
    if not receipt.accepted:
        reasons = "; ".join(
            f"{item.file_name}: {item.reason}" for item in receipt.rejected
        )
        raise HTTPException(status_code=400, detail=f"No files accepted ({reasons})")

    return UploadBatchResponse(
        accepted=[_snapshot_to_response(item) for item in receipt.accepted],
        rejected=[
            RejectedFileResponse(file_name=item.file_name, reason=item.reason)
            for item in receipt.rejected
        ],
    )


@router.get("/v1/uploads", response_model=list[FileStatusResponse])
async def list_uploads() -> list[FileStatusResponse]:
    return [_snapshot_to_response(item) for item in get_coordinator().list_files()]


@router.get("/v1/uploads/{file_id}", response_model=FileStatusResponse)
async def get_upload(file_id: str) -> FileStatusResponse:
    snapshot = get_coordinator().get_file(file_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="File not found")
    return _snapshot_to_response(snapshot)


@router.delete("/v1/uploads/{file_id}")
async def remove_upload(file_id: str) -> dict[str, object]:
    if not get_coordinator().remove(file_id):
        raise HTTPException(status_code=404, detail="File not found")
    return {"file_id": file_id, "removed": True}


@router.get("/v1/previews/{preview_id}")
def get_preview(preview_id: str) -> Response:
    preview = get_previews().get(preview_id)
    if preview is None:
        raise HTTPException(status_code=404, detail="Preview not found")
    return Response(content=preview.content, media_type=preview.mime_type)


@router.get("/v1/detections")
async def get_detections() -> list[dict[str, object]]:
    return [_detection_to_dict(item) for item in get_coordinator().list_detections()]


@router.get("/v1/alerts")
async def get_alerts(
    priority: Literal["high", "medium", "low"] | None = None,
    alert_type: Literal["violation", "suspicious", "warning"] | None = None,
) -> list[dict[str, object]]:
    alerts = get_coordinator().list_alerts()
    if priority is not None:
        alerts = [alert for alert in alerts if alert.priority == priority]
    if alert_type is not None:
        alerts = [alert for alert in alerts if alert.alert_type == alert_type]
    return [_alert_to_dict(alert) for alert in alerts]


@router.get("/v1/authorized-ads")
async def get_authorized_ads() -> list[dict[str, object]]:
    ads = get_coordinator().list_authorized_ads()
    return [_authorized_ad_to_dict(ad) for ad in ads]


@router.get("/v1/results")
async def get_results() -> list[dict[str, object]]:
    return [_result_to_dict(item) for item in get_coordinator().list_results()]


@router.get("/v1/stats")
async def get_stats() -> dict[str, object]:
    return _stats_to_dict(get_coordinator().compute_stats())


def _snapshot_to_response(snapshot: FileSnapshot) -> FileStatusResponse:
    return FileStatusResponse(
        file_id=snapshot.file_id,
        file_name=snapshot.file_name,
        state=snapshot.state,
        progress=snapshot.progress,
        preview_uri=snapshot.preview_uri,
        detection=(
            _detection_to_dict(snapshot.detection)
            if snapshot.detection is not None
            else None
        ),
        error=snapshot.error,
    )


def _detection_to_dict(detection: Detection) -> dict[str, object]:
    return {
        "id": detection.detection_id,
        "image": detection.image_uri,
        "text": detection.text,
        "confidence": detection.confidence,
        "confidence_score": detection.confidence_score,
        "status": detection.status,
        "timestamp": detection.timestamp,
        "bounding_boxes": [asdict(region) for region in detection.regions],
        "location": (
            asdict(detection.location) if detection.location is not None else None
        ),
    }


def _alert_to_dict(alert: Alert) -> dict[str, object]:
    return {
        "id": alert.alert_id,
        "detection": _detection_to_dict(alert.detection),
        "type": alert.alert_type,
        "priority": alert.priority,
        "timestamp": alert.timestamp,
    }


def _authorized_ad_to_dict(ad: AuthorizedAd) -> dict[str, object]:
    return {
        "id": ad.ad_id,
        "text": ad.text,
        "added_by": ad.added_by,
        "date_added": ad.date_added,
        "active": ad.active,
    }


def _result_to_dict(result: DetectionResult) -> dict[str, object]:
    return {
        "id": result.result_id,
        "detection_id": result.detection.detection_id,
        "result": result.result,
        "timestamp": result.timestamp,
    }


def _stats_to_dict(stats: DashboardStats) -> dict[str, object]:
    return {
        "total_detections": stats.total_detections,
        "unauthorized_ads": stats.unauthorized_ads,
        "detection_rate": stats.detection_rate,
        "alerts_today": stats.alerts_today,
        "trends": [asdict(point) for point in stats.trends],
    }
