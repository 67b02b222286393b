"""Error taxonomy for the analysis engine."""

from __future__ import annotations

from typing import Optional


class AssessorError(Exception):
    """Base class for all engine errors."""


class NotFoundError(AssessorError):
    """A framework or analysis record does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class InvalidFrameworkError(AssessorError):
    """Framework definition cannot be scored (no controls, broken hierarchy)."""


class ComputationError(AssessorError):
    """Unexpected fault inside a scoring stage."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"{stage} failed: {message}")


class PersistenceError(AssessorError):
    """Reading or writing an analysis record failed."""


class InvalidTransitionError(AssessorError):
    """An analysis record was asked to move to a state it cannot reach."""

    def __init__(self, analysis_id: str, current: str, target: str):
        self.analysis_id = analysis_id
        self.current = current
        self.target = target
        super().__init__(
            f"Analysis {analysis_id} cannot move from {current} to {target}"
        )


class InvalidRequestError(AssessorError):
    """The triggering request is missing a required identifier."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class AnalysisNotCompletedError(AssessorError):
    """Export was requested for an analysis that has not completed."""

    def __init__(self, analysis_id: str, status: str):
        self.analysis_id = analysis_id
        self.status = status
        super().__init__(f"Analysis {analysis_id} is not completed (status: {status})")
