"""Exception types raised by the matting pipeline."""


class MattingError(Exception):
    """Base class for all matting errors."""


class InvalidInputError(MattingError, ValueError):
    """Image is missing, empty, or a size parameter is invalid."""


class ModelLoadError(MattingError, RuntimeError):
    """Model file is missing, unsupported, or the session could not be created."""


class NotInitializedError(MattingError, RuntimeError):
    """Processing was attempted before a model was loaded successfully."""


class InferenceError(MattingError, RuntimeError):
    """The inference runtime failed or returned an unexpected shape."""


class DimensionMismatchError(MattingError, ValueError):
    """Alpha map and source image sizes differ."""


class PipelineBusyError(MattingError, RuntimeError):
    """A process() call is already running on this pipeline."""
