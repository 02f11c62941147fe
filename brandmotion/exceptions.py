from typing import Optional


class ValidationError(Exception):
    """Raised when a configuration file or value is invalid."""

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        column_number: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.line_number = line_number
        self.column_number = column_number

    def __str__(self):
        if self.line_number is not None:
            return f"Validation Error: {self.message} (Line: {self.line_number}, Column: {self.column_number})"
        return f"Validation Error: {self.message}"


class PipelineError(Exception):
    """Base class for failures of a branding job."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return f"Pipeline Error: {self.message}"


class AcquisitionError(PipelineError):
    """The processing engine could not be initialized."""

    def __str__(self):
        return f"Acquisition Error: {self.message}"


class ArtifactError(PipelineError):
    """An expected artifact is missing from the engine storage."""

    def __init__(self, message: str, artifact: Optional[str] = None):
        super().__init__(message)
        self.artifact = artifact

    def __str__(self):
        return f"Artifact Error: {self.message}"


class RenderError(PipelineError):
    """The name card could not be rasterized."""

    def __str__(self):
        return f"Render Error: {self.message}"


class StageExecutionError(PipelineError):
    """The engine reported a failure for a submitted stage."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        returncode: Optional[int] = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.returncode = returncode

    def __str__(self):
        if self.returncode is not None:
            return f"Stage Execution Error: {self.message} (rc={self.returncode})"
        return f"Stage Execution Error: {self.message}"


class PlanError(PipelineError):
    """A composition plan references an artifact that is not available."""

    def __str__(self):
        return f"Plan Error: {self.message}"
