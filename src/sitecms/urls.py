"""
URL helpers for CMS content and uploaded files.
"""

import re
from typing import Optional, Tuple
from urllib.parse import quote, unquote, urlsplit

from sitecms.exceptions import MalformedURLError

UPLOAD_CATEGORIES = ("images", "documents", "resumes", "photos")

_UPLOAD_PATH_RE = re.compile(
    r"/uploads/(" + "|".join(UPLOAD_CATEGORIES) + r")/(.+)$"
)


def _trim_base(base_url: Optional[str]) -> str:
    base = base_url or ''
    return base[:-1] if base.endswith('/') else base


def normalize_url(url: Optional[str], base_url: Optional[str] = '') -> str:
    """
    Turn a stored image/file reference into a usable URL.

    Absolute and data: URLs pass through unchanged; root-relative and bare
    paths are prefixed with the CMS base URL.

    Args:
        url: Stored reference (may be empty)
        base_url: CMS base address

    Returns:
        Normalized URL, or '' for empty input
    """
    if not url:
        return ''

    if url.startswith('http://') or url.startswith('https://'):
        return url

    if url.startswith('data:'):
        return url

    base = _trim_base(base_url)

    if url.startswith('/'):
        return f"{base}{url}"

    return f"{base}/{url}"


def join_upload_url(path: str, base_url: Optional[str] = '') -> str:
    """Build the full URL for a path returned by the upload endpoints."""
    if not path:
        return ''
    if not base_url:
        return path
    return normalize_url(path, base_url)


def _decode_filename(filename: str) -> str:
    # Uploaded names are sometimes encoded twice on the way through forms
    decoded = filename
    for _ in range(2):
        decoded = unquote(decoded, errors='strict')
    return decoded


def parse_upload_url(file_url: str, base_url: Optional[str] = '') -> Tuple[str, str]:
    """
    Recover category and filename from an uploaded file URL.

    Accepts root-relative paths, absolute URLs (with or without the CMS base),
    query strings, fragments and single/double percent-encoding.

    Args:
        file_url: URL such as http://host/uploads/documents/file-123.pdf?x=1
        base_url: CMS base address to strip

    Returns:
        Tuple of (category, filename)

    Raises:
        MalformedURLError: If the URL is not /uploads/<category>/<filename>
    """
    if not file_url:
        raise MalformedURLError(file_url or '')

    path = file_url.strip()
    base = _trim_base(base_url)

    if base and base in path:
        path = path.replace(base, '', 1)
        if not path.startswith('/'):
            path = '/' + path

    if path.startswith('http://') or path.startswith('https://'):
        try:
            path = urlsplit(path).path
        except ValueError:
            found = re.search(r"/uploads/.+", path)
            if found:
                path = found.group(0)

    path = path.split('?')[0].split('#')[0]

    match = _UPLOAD_PATH_RE.search(path)
    if not match:
        raise MalformedURLError(file_url, parsed=path)

    category, filename = match.group(1), match.group(2).strip()

    try:
        filename = _decode_filename(filename)
    except UnicodeDecodeError:
        pass

    filename = filename.split('/')[-1] or filename
    if not filename:
        raise MalformedURLError(file_url, parsed=path)

    return category, filename


def delete_path(category: str, filename: str) -> str:
    """API path for deleting an uploaded file."""
    return f"/api/upload/{category}/{quote(filename, safe='')}"
