"""
Request orchestration for contract PDFs.

The pipeline is the only place that combines the components: optional
watermark and metadata stamping, password derivation and encryption. It is
built from explicit settings and collaborators and holds no per-request
state, so one instance serves every request concurrently.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .configuration import ServiceSettings
from .encryption import EncryptedDocument, PdfEncryptionService, build_encryptor
from .passwords import PasswordDeriver
from .validation import EncryptionRequest
from .watermark import WatermarkOptions, add_metadata, add_watermark

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessedDocument:
    document: EncryptedDocument
    password: str
    processing_time_ms: int


@dataclass(frozen=True)
class WatermarkedDocument:
    content: bytes
    processing_time_ms: int

    @property
    def size_bytes(self) -> int:
        return len(self.content)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class ContractPdfPipeline:
    def __init__(
        self,
        settings: ServiceSettings,
        encryption_service: PdfEncryptionService,
        deriver: PasswordDeriver,
    ) -> None:
        self.settings = settings
        self.encryption_service = encryption_service
        self.deriver = deriver

    @classmethod
    def from_settings(cls, settings: ServiceSettings) -> "ContractPdfPipeline":
        encryption_service = PdfEncryptionService(build_encryptor(settings), settings.temp_path)
        return cls(settings, encryption_service, PasswordDeriver(settings.server_salt))

    def process(
        self,
        request: EncryptionRequest,
        watermark: Optional[WatermarkOptions] = None,
        metadata: Optional[Mapping[str, Optional[str]]] = None,
    ) -> ProcessedDocument:
        """
        Full flow: optional watermark, optional metadata, then encryption with
        the fixed default permissions.
        """
        started = time.perf_counter()
        pdf_bytes = request.pdf_bytes

        if watermark is not None:
            pdf_bytes = add_watermark(pdf_bytes, watermark)
        if metadata:
            pdf_bytes = add_metadata(pdf_bytes, metadata)

        password = self.deriver.derive(request.contract_id, request.contract_number)
        encrypted = self.encryption_service.encrypt(pdf_bytes, password)
        return ProcessedDocument(EncryptedDocument(encrypted), password, _elapsed_ms(started))

    def encrypt_only(
        self,
        request: EncryptionRequest,
        permissions: Optional[Mapping[str, Any]] = None,
    ) -> ProcessedDocument:
        started = time.perf_counter()
        password = self.deriver.derive(request.contract_id, request.contract_number)

        if permissions:
            encrypted = self.encryption_service.encrypt_with_permissions(request.pdf_bytes, password, permissions)
        else:
            encrypted = self.encryption_service.encrypt(request.pdf_bytes, password)
        return ProcessedDocument(EncryptedDocument(encrypted), password, _elapsed_ms(started))

    def watermark_only(self, pdf_bytes: bytes, options: Optional[WatermarkOptions] = None) -> WatermarkedDocument:
        started = time.perf_counter()
        stamped = add_watermark(pdf_bytes, options)
        return WatermarkedDocument(stamped, _elapsed_ms(started))

    def is_ready(self) -> dict[str, bool]:
        """Readiness checks: the temp directory is writable and the backend can run."""
        checks = {"encryptor": self.encryption_service.encryptor.is_available()}
        temp_dir = self.settings.temp_path
        try:
            temp_dir.mkdir(parents=True, exist_ok=True)
            marker = temp_dir / f".ready-{time.time_ns()}"
            marker.touch()
            marker.unlink()
            checks["temp_dir"] = True
        except OSError as exc:
            logger.warning(f"Temp directory {temp_dir} is not writable: {exc}")
            checks["temp_dir"] = False
        return checks
