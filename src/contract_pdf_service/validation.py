"""
Input validation for PDF processing requests.

Everything here runs before any document processing, so a bad request is
always reported as a ``ValidationError`` (HTTP 400) and never as a
processing failure.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import List, Optional

from .exceptions import ValidationError

DATA_URI_PATTERN = re.compile(r"^data:application/pdf;base64,([A-Za-z0-9+/=]+)$")


@dataclass(frozen=True)
class EncryptionRequest:
    contract_id: str
    contract_number: str
    pdf_bytes: bytes


def _format_megabytes(size: int) -> str:
    return f"{size / 1024 / 1024:g}MB"


def _decode(pdf_base64: str) -> bytes:
    match = DATA_URI_PATTERN.match(pdf_base64 or "")
    if not match:
        raise ValueError("pdfBase64 must be a valid base64-encoded PDF")
    try:
        return base64.b64decode(match.group(1), validate=True)
    except binascii.Error as exc:
        raise ValueError("pdfBase64 must be a valid base64-encoded PDF") from exc


def _size_errors(pdf_bytes: bytes, max_size: int) -> List[str]:
    if not pdf_bytes:
        return ["PDF file is empty"]
    if len(pdf_bytes) > max_size:
        return [f"PDF file too large (max {_format_megabytes(max_size)})"]
    return []


def decode_pdf_data_uri(pdf_base64: str) -> bytes:
    """Decode a ``data:application/pdf;base64,...`` string."""
    try:
        return _decode(pdf_base64)
    except ValueError as exc:
        raise ValidationError("Invalid request", details=[str(exc)]) from exc


def validate_pdf_size(pdf_bytes: bytes, max_size: int) -> None:
    """Reject empty documents and documents larger than ``max_size`` bytes."""
    errors = _size_errors(pdf_bytes, max_size)
    if errors:
        raise ValidationError("Invalid request", details=errors)


def decode_and_validate_pdf(pdf_base64: str, max_size: int) -> bytes:
    pdf_bytes = decode_pdf_data_uri(pdf_base64)
    validate_pdf_size(pdf_bytes, max_size)
    return pdf_bytes


def build_encryption_request(
    contract_id: Optional[str],
    contract_number: Optional[str],
    pdf_base64: Optional[str],
    max_size: int,
) -> EncryptionRequest:
    """
    Validate every field and build an ``EncryptionRequest``.

    All problems are collected and raised together so the caller can fix
    them in one round trip.
    """
    errors: List[str] = []
    pdf_bytes = b""

    if not pdf_base64:
        errors.append("pdfBase64 is required")
    else:
        try:
            pdf_bytes = _decode(pdf_base64)
        except ValueError as exc:
            errors.append(str(exc))
        else:
            errors.extend(_size_errors(pdf_bytes, max_size))

    if not contract_id or not contract_id.strip():
        errors.append("contractId is required")
    if not contract_number or not contract_number.strip():
        errors.append("contractNumber is required")

    if errors:
        raise ValidationError("Invalid request", details=errors)

    return EncryptionRequest(
        contract_id=contract_id,  # type: ignore[arg-type]
        contract_number=contract_number,  # type: ignore[arg-type]
        pdf_bytes=pdf_bytes,
    )


def encode_pdf_data_uri(pdf_bytes: bytes) -> str:
    return "data:application/pdf;base64," + base64.b64encode(pdf_bytes).decode("ascii")
