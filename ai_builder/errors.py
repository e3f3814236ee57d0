"""Error taxonomy for the AI Builder service.

Every error raised across a request boundary derives from ``AIBuilderError``
and knows the HTTP status it maps to, so the server renders all of them
through one handler as ``{error, message, details}``.
"""

from __future__ import annotations

from typing import Any, Iterable


class AIBuilderError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    title: str = "Internal error"

    def __init__(self, message: str, details: Any = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Render the structured JSON error body."""
        body: dict[str, Any] = {"error": self.title, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ProviderError(AIBuilderError):
    """The upstream LLM call failed (network, auth, quota, vendor 4xx/5xx)."""

    status_code = 502
    title = "Provider request failed"

    def __init__(
        self,
        message: str,
        provider: str = "",
        upstream_status: int | None = None,
        detail: Any = None,
    ) -> None:
        self.provider = provider
        self.upstream_status = upstream_status
        self.detail = detail
        details = None
        if upstream_status is not None or detail is not None:
            details = {"provider": provider, "status": upstream_status, "detail": detail}
        super().__init__(message, details=details)


class UnknownProviderError(AIBuilderError):
    """The requested provider identifier is not registered."""

    status_code = 400
    title = "Unknown provider"

    def __init__(self, identifier: str, valid: Iterable[str]) -> None:
        self.identifier = identifier
        self.valid = sorted(valid)
        super().__init__(
            f"Provider '{identifier}' is not supported. Options: {', '.join(self.valid)}",
            details={"valid": self.valid},
        )


class ConfigurationError(AIBuilderError):
    """The selected provider lacks its credential or endpoint."""

    status_code = 500
    title = "Provider not configured"


class MalformedResponseError(AIBuilderError):
    """Model output could not be coerced into the expected JSON shape."""

    status_code = 502
    title = "Malformed model response"

    EXCERPT_CHARS = 500

    def __init__(self, message: str, raw: str = "") -> None:
        self.excerpt = raw[: self.EXCERPT_CHARS]
        super().__init__(message, details={"excerpt": self.excerpt} if raw else None)


class UnsafePathError(AIBuilderError):
    """A path resolves outside the project source root."""

    status_code = 400
    title = "Unsafe path"

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Path escapes the project source root: {path}")


class NotFoundError(AIBuilderError):
    """A referenced file does not exist."""

    status_code = 404
    title = "File not found"

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"File not found: {path}")


class EmptyResultError(AIBuilderError):
    """A plan had no tasks, or execution produced no files at all."""

    status_code = 500
    title = "Empty generation result"


class InvalidRequestError(AIBuilderError):
    """A required request field is missing or malformed."""

    status_code = 400
    title = "Invalid request"


class CheckpointError(AIBuilderError):
    """A pre/post-write checkpoint could not be created or restored."""

    title = "Checkpoint failed"

    def __init__(self, message: str, command: str = "", stderr: str = "") -> None:
        self.command = command
        self.stderr = stderr
        super().__init__(message)
