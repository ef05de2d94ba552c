"""Service configuration read from DEEPSIGHT_* environment variables."""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TypeVar

from libs.core.application.pipeline_coordinator import PipelineSettings
from libs.core.domain.stats import DEFAULT_TREND_DAYS
from services.api_gateway.infrastructure.simulated_classifier import (
    ClassifierSettings,
)

ENV_PREFIX = "DEEPSIGHT_"

T = TypeVar("T")


@dataclass
class AppSettings:
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    classifier: ClassifierSettings = field(default_factory=ClassifierSettings)
    trend_days: int = DEFAULT_TREND_DAYS
    log_level: str = "INFO"


def load_settings(environ: Mapping[str, str] | None = None) -> AppSettings:
    """Build settings from the environment, falling back to defaults.

    Raises ValueError naming the variable when a value cannot be parsed.
    """
    env = os.environ if environ is None else environ
    defaults = AppSettings()
    pipeline = PipelineSettings(
        progress_step=_read(env, "PROGRESS_STEP", int, defaults.pipeline.progress_step),
        progress_interval_sec=_read(
            env,
            "PROGRESS_INTERVAL_SEC",
            float,
            defaults.pipeline.progress_interval_sec,
        ),
        classify_timeout_sec=_read(
            env,
            "CLASSIFY_TIMEOUT_SEC",
            float,
            defaults.pipeline.classify_timeout_sec,
        ),
        max_upload_bytes=_read(
            env, "MAX_UPLOAD_BYTES", int, defaults.pipeline.max_upload_bytes
        ),
    )
    classifier = ClassifierSettings(
        min_delay_sec=_read(
            env,
            "CLASSIFIER_MIN_DELAY_SEC",
            float,
            defaults.classifier.min_delay_sec,
        ),
        max_delay_sec=_read(
            env,
            "CLASSIFIER_MAX_DELAY_SEC",
            float,
            defaults.classifier.max_delay_sec,
        ),
        authorized_ratio=_read(
            env,
            "AUTHORIZED_RATIO",
            float,
            defaults.classifier.authorized_ratio,
        ),
        seed=_read(env, "CLASSIFIER_SEED", int, None),
    )
    settings = AppSettings(
        pipeline=pipeline,
        classifier=classifier,
        trend_days=_read(env, "TREND_DAYS", int, defaults.trend_days),
        log_level=env.get(f"{ENV_PREFIX}LOG_LEVEL", defaults.log_level).upper(),
    )
    _check(settings)
    return settings


def _read(
    env: Mapping[str, str],
    name: str,
    parse: Callable[[str], T],
    default: T,
) -> T:
    key = f"{ENV_PREFIX}{name}"
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return parse(raw.strip())
    except ValueError as error:
        raise ValueError(f"invalid value for {key}: {raw!r}") from error


def _check(settings: AppSettings) -> None:
    if settings.pipeline.progress_step <= 0:
        raise ValueError(f"{ENV_PREFIX}PROGRESS_STEP must be positive")
    if settings.pipeline.classify_timeout_sec <= 0:
        raise ValueError(f"{ENV_PREFIX}CLASSIFY_TIMEOUT_SEC must be positive")
    if not 0.0 <= settings.classifier.authorized_ratio <= 1.0:
        raise ValueError(f"{ENV_PREFIX}AUTHORIZED_RATIO must be between 0 and 1")
    if settings.classifier.min_delay_sec > settings.classifier.max_delay_sec:
        raise ValueError(
            f"{ENV_PREFIX}CLASSIFIER_MIN_DELAY_SEC exceeds CLASSIFIER_MAX_DELAY_SEC"
        )
    if settings.trend_days <= 0:
        raise ValueError(f"{ENV_PREFIX}TREND_DAYS must be positive")
