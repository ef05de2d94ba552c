"""Dashboard statistics derived from the detection store collections."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from libs.core.domain.entities import Alert, DashboardStats, Detection, TrendPoint

DEFAULT_TREND_DAYS = 3


def build_dashboard_stats(
    detections: list[Detection],
    alerts: list[Alert],
    now: datetime | None = None,
    trend_days: int = DEFAULT_TREND_DAYS,
) -> DashboardStats:
    """Aggregate store contents into dashboard numbers.

    ``alerts_today`` compares calendar dates in the timezone of ``now``; an
    alert at 23:59:59 counts for that day and one at 00:00:01 the next day
    does not, even though they are seconds apart.
    """
    reference = now if now is not None else datetime.now().astimezone()
    if reference.tzinfo is None:
        reference = reference.astimezone()
    today = reference.date()

    alert_days = [_local_day(alert.timestamp, reference) for alert in alerts]
    detection_days = [_local_day(item.timestamp, reference) for item in detections]

    return DashboardStats(
        total_detections=len(detections),
        unauthorized_ads=len(alerts),
        detection_rate=_detection_rate(detections),
        alerts_today=sum(1 for day in alert_days if day == today),
        trends=_build_trends(
            detection_days=detection_days,
            alert_days=alert_days,
            today=today,
            trend_days=trend_days,
        ),
    )


def _local_day(timestamp: str, reference: datetime) -> date | None:
    try:
        moment = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment.astimezone(reference.tzinfo).date()


def _detection_rate(detections: list[Detection]) -> int:
    if not detections:
        return 0
    mean_score = sum(item.confidence_score for item in detections) / len(detections)
    return round(mean_score * 100)


def _build_trends(
    detection_days: list[date | None],
    alert_days: list[date | None],
    today: date,
    trend_days: int,
) -> list[TrendPoint]:
    trends: list[TrendPoint] = []
    for offset in range(trend_days - 1, -1, -1):
        day = today - timedelta(days=offset)
        trends.append(
            TrendPoint(
                date=day.isoformat(),
                detections=sum(1 for item in detection_days if item == day),
                violations=sum(1 for item in alert_days if item == day),
            )
        )
    return trends
