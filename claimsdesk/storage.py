"""
Claims Desk - Signed Document Storage

Signed PDFs pulled back from JotForm are kept on disk, one folder per case.
"""

import re
from pathlib import Path

from claimsdesk.config import settings, SIGNED_DOCUMENTS_DIR

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_path_component(value: str) -> str:
    """Reduce a string to characters that are safe in a single path component."""
    cleaned = _UNSAFE_CHARS.sub("_", str(value)).strip("._")
    return cleaned or "unnamed"


def get_case_documents_dir(case_id: str) -> Path:
    """Get the folder holding a case's signed documents."""
    return settings.UPLOAD_DIR / SIGNED_DOCUMENTS_DIR / safe_path_component(case_id)


def save_signed_document(case_id: str, filename: str, content: bytes) -> Path:
    """
    Write a signed document to the case folder.

    An existing file with the same name is overwritten, so re-fetching the
    PDF for a submission is harmless.

    Returns:
        Path of the stored file
    """
    folder = get_case_documents_dir(case_id)
    folder.mkdir(parents=True, exist_ok=True)

    file_path = folder / safe_path_component(filename)
    file_path.write_bytes(content)
    return file_path
