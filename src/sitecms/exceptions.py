"""
Exception hierarchy for the sitecms client.

Read-path failures are absorbed by the client and never surface as
exceptions; these classes are raised on the write path, by uploads and by
URL parsing. All inherit from CMSError so callers can catch any client
error with a single except clause.

Example:
    from sitecms.exceptions import SaveError

    try:
        client.save('technology', 'hero', {'title': 'Hero'})
    except SaveError as e:
        show_message(e.message)
"""

from typing import Optional


class CMSError(Exception):
    """Base exception for all sitecms errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class TransportError(CMSError):
    """
    Raised when the CMS cannot be reached or returns a malformed response.

    Covers connection refused, DNS failures, timeouts and bodies that are
    not valid JSON.
    """

    pass


class SaveError(CMSError):
    """
    Raised when content could not be saved to the CMS.

    By the time this is raised the edit has already been written to the
    local cache, so `saved_locally` is always True.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        network_error: bool = False,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.network_error = network_error
        self.saved_locally = True


class ValidationError(SaveError):
    """Raised when the CMS rejects the submitted payload."""

    pass


class MalformedURLError(CMSError):
    """Raised when an uploaded file URL does not match /uploads/<category>/<filename>."""

    def __init__(self, url: str, parsed: Optional[str] = None):
        super().__init__(
            "Invalid file URL format. Cannot delete this file.",
            details={'url': url, 'parsed': parsed},
        )
        self.url = url


class UploadError(CMSError):
    """Raised when a file upload is rejected locally or by the CMS."""

    pass


class AccessDeniedError(CMSError):
    """Raised when the admin session may not edit the requested page."""

    pass
