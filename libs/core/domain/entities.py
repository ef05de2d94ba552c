from dataclasses import dataclass, field
from typing import Optional

STATUS_PENDING = "Pending"
STATUS_AUTHORIZED = "Authorized"
STATUS_UNAUTHORIZED = "Unauthorized"
DETECTION_STATUSES = frozenset(
    {STATUS_PENDING, STATUS_AUTHORIZED, STATUS_UNAUTHORIZED}
)


@dataclass(frozen=True)
class GeoLocation:
    """Where the analyzed image was captured."""

    lat: float
    lng: float
    address: str


@dataclass(frozen=True)
class BoundingRegion:
    """Region of interest inside the source image, in pixels."""

    region_id: str
    x: int
    y: int
    width: int
    height: int
    confidence: float
    text: str
    status: str


@dataclass(frozen=True)
class Detection:
    """Single analyzed image instance."""

    detection_id: str
    image_uri: str
    text: str
    confidence: str
    confidence_score: float
    status: str
    timestamp: str
    regions: tuple[BoundingRegion, ...] = ()
    location: Optional[GeoLocation] = None


@dataclass(frozen=True)
class Alert:
    """Flags a detection that requires operator attention."""

    alert_id: str
    detection: Detection
    alert_type: str
    priority: str
    timestamp: str


@dataclass(frozen=True)
class AuthorizedAd:
    """Whitelisted advertisement record."""

    ad_id: str
    text: str
    added_by: str
    date_added: str
    active: bool = True
    image_uri: Optional[str] = None


@dataclass(frozen=True)
class DetectionResult:
    """Audit record correlating a detection with its outcome."""

    result_id: str
    detection: Detection
    result: str
    timestamp: str


@dataclass(frozen=True)
class ImageHandle:
    """Accepted upload as seen by the classifier."""

    uri: str
    file_name: str
    mime_type: str
    byte_size: int


@dataclass(frozen=True)
class ClassifierVerdict:
    """Classifier output for one image."""

    status: str
    confidence_percent: int
    confidence_fraction: float
    label: str
    regions: tuple[BoundingRegion, ...] = ()
    location: Optional[GeoLocation] = None


@dataclass(frozen=True)
class TrendPoint:
    date: str
    detections: int
    violations: int


@dataclass(frozen=True)
class DashboardStats:
    """Aggregates shown on the operator dashboard."""

    total_detections: int
    unauthorized_ads: int
    detection_rate: int
    alerts_today: int
    trends: list[TrendPoint] = field(default_factory=list)
