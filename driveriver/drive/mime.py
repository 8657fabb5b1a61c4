"""
Download URL and content-type resolution for Drive files.

Native Google documents have no binary to download; they are exported as PDF.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .models import FileRecord

logger = logging.getLogger(__name__)

GOOGLE_FOLDER = "application/vnd.google-apps.folder"
GOOGLE_DOC = "application/vnd.google-apps.document"
GOOGLE_SHEET = "application/vnd.google-apps.spreadsheet"
PDF = "application/pdf"

# Native types we know how to export, and the export format used for each
EXPORT_FORMATS = {
    GOOGLE_DOC: PDF,
    GOOGLE_SHEET: PDF,
}


@dataclass(frozen=True)
class DownloadTarget:
    """Where to fetch a file's content from, and what type the bytes will be."""
    url: str
    effective_mime_type: str


def is_folder(mime_type: str) -> bool:
    return mime_type == GOOGLE_FOLDER


def resolve_download(file: FileRecord) -> Optional[DownloadTarget]:
    """
    Pick the download URL and effective MIME type for a file.

    Policy, first match wins:
    - a non-empty downloadUrl is used as-is with the file's own type
    - Google Docs and Sheets use their PDF export link
    - anything else (folders, other native types) has no content

    Returns:
        DownloadTarget, or None if the file has no retrievable content
    """
    if file.download_url:
        return DownloadTarget(file.download_url, file.mime_type)

    export_type = EXPORT_FORMATS.get(file.mime_type)
    if export_type:
        url = file.export_links.get(export_type)
        if url:
            return DownloadTarget(url, export_type)
        logger.debug("No %s export link for %s (%s)", export_type, file.id, file.mime_type)

    return None


def fetch_content(client, file: FileRecord) -> Optional[bytes]:
    """
    Download a file's content through the Drive client.

    Failures are soft: None is returned and the client logs the reason.
    """
    target = resolve_download(file)
    if target is None:
        return None
    return client.fetch_bytes(target.url)
