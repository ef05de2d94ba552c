class PipelineError(Exception):
    """Base error for the detection ingestion pipeline."""


class IntakeRejected(PipelineError, ValueError):
    """Upload refused before processing starts (bad type, size or name)."""

    def __init__(self, file_name: str, reason: str) -> None:
        super().__init__(f"{file_name}: {reason}")
        self.file_name = file_name
        self.reason = reason


class ClassificationFailed(PipelineError):
    """Classifier raised, timed out or returned an unusable verdict."""


class PersistenceFailed(PipelineError):
    """Detection store rejected one of the writes for a file."""


class InvalidTransition(PipelineError):
    """File state machine was asked to leave a state it cannot leave."""
