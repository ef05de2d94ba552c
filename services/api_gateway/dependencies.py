from libs.core.application.pipeline_coordinator import PipelineCoordinator
from services.api_gateway.infrastructure.memory_store import (
    InMemoryDatabase,
    InMemoryDetectionStore,
)
from services.api_gateway.infrastructure.preview_registry import (
    InMemoryPreviewRegistry,
)
from services.api_gateway.infrastructure.simulated_classifier import (
    SimulatedClassifier,
)
from services.api_gateway.settings import AppSettings, load_settings

settings = load_settings()
db = InMemoryDatabase()
previews = InMemoryPreviewRegistry()
coordinator = PipelineCoordinator(
    store=InMemoryDetectionStore(db, trend_days=settings.trend_days),
    classifier=SimulatedClassifier(settings.classifier),
    previews=previews,
    settings=settings.pipeline,
)


def get_coordinator() -> PipelineCoordinator:
    return coordinator


def get_previews() -> InMemoryPreviewRegistry:
    return previews


def reset_state(new_settings: AppSettings | None = None) -> None:
    """Drop stored records and rebuild the pipeline, optionally reconfigured."""
    global settings, coordinator

    if new_settings is not None:
        settings = new_settings
    db.clear()
    previews.clear()
    coordinator = PipelineCoordinator(
        store=InMemoryDetectionStore(db, trend_days=settings.trend_days),
        classifier=SimulatedClassifier(settings.classifier),
        previews=previews,
        settings=settings.pipeline,
    )
