"""Exception types raised by the automation pipeline."""


class TubeAutomatorError(Exception):
    """Base class for every pipeline error."""


class ConfigurationError(TubeAutomatorError):
    """A credential or setting is missing. Raised before any request is sent."""


class ProviderError(TubeAutomatorError):
    """The generative service returned no usable payload."""


class UploadError(TubeAutomatorError):
    """Upload session initiation or transfer failed."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class ThumbnailAttachError(UploadError):
    """thumbnails.set rejected the image. Never fatal to the job."""


class JobStateError(TubeAutomatorError):
    """The requested action is not valid for the job's current state."""
