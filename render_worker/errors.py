from typing import Optional


class RenderWorkerError(Exception):
    """Base class for failures that map onto an HTTP error response."""

    status_code: int = 500
    default_message: str = "render failed"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(RenderWorkerError):
    status_code = 400
    default_message = "invalid request"


class AuthError(RenderWorkerError):
    status_code = 401
    default_message = "unauthorized"


class MissingApiKey(AuthError):
    status_code = 401
    default_message = "Missing x-api-key header"


class InvalidApiKey(AuthError):
    status_code = 403
    default_message = "Invalid API key"


class ProbeFailure(RenderWorkerError):
    default_message = "ffprobe failed"


class EncodeFailure(RenderWorkerError):
    default_message = "ffmpeg failed"


class StreamError(RenderWorkerError):
    default_message = "Failed to read output file"


class CleanupError(RenderWorkerError):
    """Raised per path by RenderJob cleanup; always logged, never returned to a client."""

    default_message = "failed to delete temporary file"
