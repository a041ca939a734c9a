"""
Upload client - sends images and documents to the CMS and deletes them.

Deletion is best-effort cleanup: it has no link to the content that
referenced the file, so a file may be deleted while still referenced or
left behind when a delete fails.
"""

import json
import mimetypes
import os
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, Optional, Tuple, Union

import requests
from requests.exceptions import RequestException

from sitecms.config import get_config
from sitecms.exceptions import MalformedURLError, UploadError
from sitecms.logger import setup_logger
from sitecms.urls import delete_path, join_upload_url, parse_upload_url

logger = setup_logger(__name__)

DEFAULT_TIMEOUT = 60  # seconds, uploads can be large

ALLOWED_DOCUMENT_TYPES = (
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
)
ALLOWED_DOCUMENT_EXTENSIONS = ('.pdf', '.doc', '.docx', '.xls', '.xlsx')

FileSource = Union[str, Path, BinaryIO]


def _describe_source(source: FileSource) -> Tuple[str, Optional[int]]:
    """Return (filename, size in bytes or None) for a path or file object."""
    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            return path.name, path.stat().st_size
        except OSError as e:
            raise UploadError(f"Upload failed: {e}", details={'filename': path.name})

    name = os.path.basename(getattr(source, 'name', '') or 'upload')
    size = None
    try:
        position = source.tell()
        source.seek(0, os.SEEK_END)
        size = source.tell() - position
        source.seek(position)
    except (AttributeError, OSError):
        pass
    return name, size


def is_allowed_document(filename: str, content_type: Optional[str] = None) -> bool:
    """Check a document by MIME type or extension (pdf, doc, docx, xls, xlsx)."""
    if content_type in ALLOWED_DOCUMENT_TYPES:
        return True
    return Path(filename).suffix.lower() in ALLOWED_DOCUMENT_EXTENSIONS


class UploadClient:
    """
    Client for the CMS upload endpoints.

    Attributes:
        base_url: CMS base address (no trailing slash)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_document_size: Optional[int] = None,
        on_message: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the upload client.

        Args:
            base_url: CMS base address (uses config cms.api_url if None)
            session: Optional requests session to reuse
            timeout: Request timeout in seconds
            max_document_size: Document size limit in bytes (config default 10MB)
            on_message: Callback for user-facing messages (logged if None)
        """
        config = get_config()
        if base_url is None:
            base_url = config.api_url
        self.base_url = (base_url or '').rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_document_size = max_document_size or config.max_document_size
        self._on_message = on_message

    def _notify(self, message: str) -> None:
        if self._on_message:
            self._on_message(message)
        else:
            logger.warning(message)

    def upload_image(self, source: FileSource) -> str:
        """
        Upload an image.

        Args:
            source: File path or binary file object

        Returns:
            Full URL of the uploaded image

        Raises:
            UploadError: If the CMS rejects the upload or cannot be reached
        """
        return self._upload(source, '/api/upload/image', 'image', 'imageUrl')

    def upload_file(self, source: FileSource) -> str:
        """
        Upload a document (PDF, DOC, DOCX, XLS, XLSX up to the size limit).

        Args:
            source: File path or binary file object

        Returns:
            Full URL of the uploaded document

        Raises:
            UploadError: If the file is not an allowed document, is too large,
                or the CMS rejects it
        """
        filename, size = _describe_source(source)
        content_type = mimetypes.guess_type(filename)[0]

        if not is_allowed_document(filename, content_type):
            raise UploadError(
                "Please upload a valid document file (PDF, DOC, DOCX, XLS, XLSX)",
                details={'filename': filename},
            )

        if size is not None and size > self.max_document_size:
            limit_mb = self.max_document_size // (1024 * 1024)
            raise UploadError(
                f"File size is too large. Maximum size is {limit_mb}MB.",
                details={'filename': filename, 'size': size},
            )

        return self._upload(source, '/api/upload/file', 'file', 'fileUrl')

    def _upload(self, source: FileSource, endpoint: str, field_name: str, url_key: str) -> str:
        filename, _ = _describe_source(source)
        content_type = mimetypes.guess_type(filename)[0] or 'application/octet-stream'
        url = f"{self.base_url}{endpoint}"

        opened = None
        try:
            if isinstance(source, (str, Path)):
                opened = open(source, 'rb')
                stream = opened
            else:
                stream = source

            logger.info("Uploading %s to %s", filename, url)
            response = self.session.post(
                url,
                files={field_name: (filename, stream, content_type)},
                timeout=self.timeout,
            )
        except (RequestException, OSError) as e:
            raise UploadError(f"Upload failed: {e}", details={'filename': filename})
        finally:
            if opened is not None:
                opened.close()

        if not response.ok:
            raise UploadError(
                f"Upload failed: {self._error_text(response, 'Upload failed')}",
                details={'status_code': response.status_code},
            )

        try:
            result = response.json()
        except ValueError:
            raise UploadError("Upload failed: malformed response from CMS")

        if not isinstance(result, dict) or not result.get('success') or not result.get(url_key):
            error = result.get('error') if isinstance(result, dict) else None
            raise UploadError(error or 'Upload failed')

        full_url = join_upload_url(result[url_key], self.base_url)
        logger.info("Uploaded %s -> %s", filename, full_url)
        return full_url

    @staticmethod
    def _error_text(response: requests.Response, default: str) -> str:
        text = response.text or ''
        try:
            body = json.loads(text)
        except ValueError:
            return text or default
        if isinstance(body, dict):
            return body.get('error') or body.get('message') or default
        return default

    def delete_file(self, file_url: str) -> bool:
        """
        Delete a previously uploaded file.

        Args:
            file_url: URL of the file, e.g. http://host/uploads/documents/file-123.pdf

        Returns:
            True if the CMS confirmed the deletion
        """
        logger.info("Attempting to delete file: %s", file_url)

        try:
            category, filename = parse_upload_url(file_url, self.base_url)
        except MalformedURLError as e:
            logger.error("Invalid file URL format: %s (parsed as %s)", file_url, e.details.get('parsed'))
            self._notify(e.message)
            return False

        url = f"{self.base_url}{delete_path(category, filename)}"
        logger.debug("Delete URL: %s", url)

        try:
            response = self.session.delete(
                url,
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout,
            )
        except RequestException as e:
            logger.error("Error deleting file %s: %s", file_url, e)
            self._notify(f"Error deleting file: {e}")
            return False

        if not response.ok:
            logger.error("Delete failed: %s %s", response.status_code, response.text)
            self._notify(self._error_text(response, 'Failed to delete file'))
            return False

        try:
            result: Dict[str, Any] = response.json()
        except ValueError as e:
            logger.error("Malformed delete response for %s: %s", file_url, e)
            self._notify(f"Error deleting file: {e}")
            return False

        if isinstance(result, dict) and result.get('success'):
            logger.info("Deleted %s/%s", category, filename)
            return True

        error = result.get('error') if isinstance(result, dict) else None
        self._notify(f"Delete failed: {error or 'Unknown error'}")
        return False

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()
