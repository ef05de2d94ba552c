"""Environment configuration tests."""

import pytest

from libs.core.application.intake import MAX_UPLOAD_BYTES
from services.api_gateway.settings import load_settings


def test_defaults_without_environment() -> None:
    settings = load_settings({})

    assert settings.pipeline.progress_step == 10
    assert settings.pipeline.progress_interval_sec == 0.1
    assert settings.pipeline.classify_timeout_sec == 10.0
    assert settings.pipeline.max_upload_bytes == MAX_UPLOAD_BYTES
    assert settings.classifier.authorized_ratio == 0.5
    assert settings.classifier.seed is None
    assert settings.trend_days == 3
    assert settings.log_level == "INFO"


def test_environment_overrides() -> None:
    settings = load_settings(
        {
            "DEEPSIGHT_PROGRESS_INTERVAL_SEC": "0",
            "DEEPSIGHT_CLASSIFY_TIMEOUT_SEC": "2.5",
            "DEEPSIGHT_MAX_UPLOAD_BYTES": "2048",
            "DEEPSIGHT_AUTHORIZED_RATIO": "1",
            "DEEPSIGHT_CLASSIFIER_MIN_DELAY_SEC": "0",
            "DEEPSIGHT_CLASSIFIER_MAX_DELAY_SEC": "0.2",
            "DEEPSIGHT_CLASSIFIER_SEED": "11",
            "DEEPSIGHT_TREND_DAYS": "7",
            "DEEPSIGHT_LOG_LEVEL": "debug",
        }
    )

    assert settings.pipeline.progress_interval_sec == 0.0
    assert settings.pipeline.classify_timeout_sec == 2.5
    assert settings.pipeline.max_upload_bytes == 2048
    assert settings.classifier.authorized_ratio == 1.0
    assert settings.classifier.max_delay_sec == 0.2
    assert settings.classifier.seed == 11
    assert settings.trend_days == 7
    assert settings.log_level == "DEBUG"


def test_blank_values_fall_back_to_defaults() -> None:
    settings = load_settings({"DEEPSIGHT_TREND_DAYS": "  "})

    assert settings.trend_days == 3


def test_unparsable_value_names_variable() -> None:
    with pytest.raises(ValueError, match="DEEPSIGHT_MAX_UPLOAD_BYTES"):
        load_settings({"DEEPSIGHT_MAX_UPLOAD_BYTES": "ten megabytes"})


@pytest.mark.parametrize(
    "environ",
    [
        {"DEEPSIGHT_AUTHORIZED_RATIO": "1.5"},
        {"DEEPSIGHT_CLASSIFY_TIMEOUT_SEC": "0"},
        {"DEEPSIGHT_PROGRESS_STEP": "-10"},
        {"DEEPSIGHT_TREND_DAYS": "0"},
        {
            "DEEPSIGHT_CLASSIFIER_MIN_DELAY_SEC": "3",
            "DEEPSIGHT_CLASSIFIER_MAX_DELAY_SEC": "1",
        },
    ],
)
def test_out_of_range_values_are_rejected(environ: dict[str, str]) -> None:
    with pytest.raises(ValueError):
        load_settings(environ)
