"""
ingestion.py — Admission check and document encoding.

Gemini takes the PDF as an inline part, so there is no text extraction
here. What we do need is to reject bad uploads before we pay for a
backend call, and to turn whatever the caller hands us (bytes, a path,
an open file, a FastAPI UploadFile's .file) into one base64 string.

pdfplumber is only used to count pages for the run log. A PDF it cannot
open still goes to Gemini, which handles some files pdfplumber chokes on.
"""

from __future__ import annotations

import base64
import io
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

import pdfplumber

from tender_lens.config import config
from tender_lens.errors import AdmissionError, EncodingError

logger = logging.getLogger(__name__)

DocumentSource = Union[bytes, bytearray, str, Path, BinaryIO]


@dataclass(frozen=True)
class EncodedDocument:
    """Transport-safe form of an admitted document."""
    mime_type: str
    data: str
    size_bytes: int
    page_count: Optional[int] = None

    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.data)


def admit_document(
    data: bytes,
    declared_type: Optional[str],
    filename: Optional[str] = None,
) -> None:
    """
    Fail fast on invalid inputs. No network calls happen before this.

    Raises:
        AdmissionError: wrong declared type or suffix, empty, or too large.
    """
    mime = (declared_type or "").split(";")[0].strip().lower()
    if mime not in config.admission.accepted_types:
        raise AdmissionError(
            f"Unsupported document type '{declared_type}'. "
            f"Supported: {', '.join(config.admission.accepted_types)}"
        )

    if filename:
        suffix = Path(filename).suffix.lower()
        if suffix not in config.admission.accepted_suffixes:
            raise AdmissionError(
                f"Unsupported file extension '{suffix}'. "
                f"Supported: {', '.join(config.admission.accepted_suffixes)}"
            )

    if not data:
        raise AdmissionError("Document is empty", reason="empty")

    size_mb = len(data) / (1024 * 1024)
    if size_mb > config.admission.max_file_size_mb:
        raise AdmissionError(
            f"File too large ({size_mb:.1f} MB). Max: {config.admission.max_file_size_mb} MB",
            reason="size",
        )


def read_document(source: DocumentSource) -> bytes:
    """
    Fully buffer a document. Documents are small (<=20MB) so we never
    stream.

    Raises:
        EncodingError: unreadable source or unsupported input type.
    """
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)

    try:
        if isinstance(source, (str, Path)):
            return Path(source).read_bytes()
        if hasattr(source, "read"):
            data = source.read()
            if not isinstance(data, (bytes, bytearray)):
                raise EncodingError(
                    f"Expected a binary stream, got {type(data).__name__} from read()"
                )
            return bytes(data)
    except EncodingError:
        raise
    except (OSError, ValueError) as exc:
        # ValueError covers reads on an already-closed file object.
        raise EncodingError(f"Could not read document: {exc}") from exc

    raise EncodingError(f"Unsupported document source: {type(source).__name__}")


def encode_document(
    source: DocumentSource,
    mime_type: str = "application/pdf",
) -> EncodedDocument:
    """Buffer and base64-encode a document for the request envelope."""
    data = read_document(source)
    try:
        encoded = base64.b64encode(data).decode("ascii")
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"Could not encode document: {exc}") from exc

    pages = count_pages(data)
    logger.info(
        "Encoded document: %.1f KB%s",
        len(data) / 1024,
        f", {pages} pages" if pages is not None else "",
    )
    return EncodedDocument(
        mime_type=mime_type,
        data=encoded,
        size_bytes=len(data),
        page_count=pages,
    )


def count_pages(data: bytes) -> Optional[int]:
    """Best-effort page count. None if pdfplumber can't open the file."""
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            return len(pdf.pages)
    except Exception as exc:
        # pdfplumber raises a zoo of pdfminer errors on damaged or
        # encrypted files. The page count is cosmetic so just log it.
        logger.warning("Could not count PDF pages: %s", exc)
        return None


def load_document(file_path: str) -> Tuple[bytes, str]:
    """
    Read a document from disk for the CLI and admit it.

    Returns (bytes, declared_type). The declared type comes from the
    file extension, the same way a browser would label the upload.
    """
    path = Path(file_path)
    if not path.exists():
        raise AdmissionError(f"File not found: {path}", reason="missing")

    declared_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    data = read_document(path)
    admit_document(data, declared_type, filename=path.name)
    return data, declared_type
