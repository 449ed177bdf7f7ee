"""Exceptions raised by the ingestion pipeline."""


class PipelineError(Exception):
    """Base class for pipeline failures."""


class NotFoundError(PipelineError):
    """A referenced topic, article or queue item does not exist."""


class InvalidTransitionError(PipelineError):
    """A processing status change that the state machine does not allow."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move article from {current!r} to {target!r}")
        self.current = current
        self.target = target


class QueueStateError(PipelineError):
    """A queue operation was attempted on an item in the wrong state."""
