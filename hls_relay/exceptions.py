"""Custom exceptions for the relay server."""

from fastapi import HTTPException, status


class ProxyError(HTTPException):
    """Base class for errors rendered to the client as plain text."""


class InvalidRequestError(ProxyError):
    """Raised when the request path does not name a handle and playlist."""

    def __init__(self, message: str = "Usage: /@handle/stream.m3u8"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message,
        )


class ManifestNotFoundError(ProxyError):
    """Raised when no candidate page embeds a manifest URL."""

    def __init__(self, handle: str | None = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Manifest not found",
        )
        self.handle = handle


class UpstreamError(ProxyError):
    """Raised when fetching or rewriting upstream content fails."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error: {message}",
        )
