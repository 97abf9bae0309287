"""
AES-256 PDF encryption behind a swappable backend.

PDF structural encryption is delegated to qpdf, either through pikepdf (the
Python binding to libqpdf) or by running the ``qpdf`` executable. Both
backends work on files, so every call goes through a pair of temporary files
that is created for that call only and removed on every exit path.

Key Components:
    - DocumentPermissions: print/modify/extract restrictions
    - PdfEncryptor: the backend protocol
    - PikepdfEncryptor / QpdfCliEncryptor: concrete backends
    - temporary_pdf_pair: scoped acquisition of the input/output paths
    - PdfEncryptionService: bytes in, encrypted bytes out
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Protocol

import pikepdf

from .configuration import ServiceSettings
from .exceptions import EncryptionError, ValidationError
from .utils import ensure_directory, unique_token

logger = logging.getLogger(__name__)

KEY_LENGTH = 256
TEMP_FILE_PREFIX = "pdf-"

PRINT_LEVELS = ("full", "low", "none")
MODIFY_LEVELS = ("all", "annotate", "form", "assembly", "none")

# qpdf exits with 3 when it succeeded but printed warnings
QPDF_SUCCESS_CODES = (0, 3)


class EncryptionBackendError(Exception):
    """Raised by a backend. Carries internal detail that is only logged."""


@dataclass(frozen=True)
class DocumentPermissions:
    """In-document restrictions, independent of the open password."""

    print: str = "full"
    modify: str = "none"
    extract: bool = False

    def __post_init__(self) -> None:
        if self.print not in PRINT_LEVELS:
            raise ValueError(f"print must be one of {PRINT_LEVELS}, got {self.print!r}")
        if self.modify not in MODIFY_LEVELS:
            raise ValueError(f"modify must be one of {MODIFY_LEVELS}, got {self.modify!r}")

    def merged(self, overrides: Optional[Mapping[str, Any]]) -> "DocumentPermissions":
        """
        Return a copy with ``overrides`` applied on top.

        ``extract`` accepts booleans as well as the qpdf style ``"y"``/``"n"``.
        Keys set to ``None`` keep the current value.
        """
        if not overrides:
            return self
        changes = {key: value for key, value in overrides.items() if value is not None}
        unknown = set(changes) - {"print", "modify", "extract"}
        if unknown:
            raise ValueError(f"Unknown permission keys: {', '.join(sorted(unknown))}")
        if "extract" in changes:
            changes["extract"] = _parse_flag(changes["extract"])
        return replace(self, **changes)

    def to_pikepdf(self) -> pikepdf.Permissions:
        modify_all = self.modify == "all"
        return pikepdf.Permissions(
            accessibility=True,
            extract=self.extract,
            modify_annotation=self.modify in ("all", "annotate"),
            modify_assembly=self.modify != "none",
            modify_form=self.modify in ("all", "annotate", "form"),
            modify_other=modify_all,
            print_lowres=self.print != "none",
            print_highres=self.print == "full",
        )

    def to_qpdf_args(self) -> list[str]:
        return [
            f"--print={self.print}",
            f"--modify={self.modify}",
            f"--extract={'y' if self.extract else 'n'}",
        ]


DEFAULT_PERMISSIONS = DocumentPermissions()


def _parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("y", "yes", "true"):
        return True
    if isinstance(value, str) and value.lower() in ("n", "no", "false", "none"):
        return False
    raise ValueError(f"Invalid flag value: {value!r}")


class PdfEncryptor(Protocol):
    """Encrypts ``input_path`` into ``output_path`` with a 256-bit AES key."""

    name: str

    def encrypt_file(self, input_path: Path, output_path: Path, password: str, permissions: DocumentPermissions) -> None: ...

    def is_available(self) -> bool: ...


class PikepdfEncryptor:
    """In-process backend using pikepdf (libqpdf). Revision 6 is AES-256."""

    name = "pikepdf"

    def encrypt_file(self, input_path: Path, output_path: Path, password: str, permissions: DocumentPermissions) -> None:
        encryption = pikepdf.Encryption(
            user=password,
            owner=password,
            R=6,
            allow=permissions.to_pikepdf(),
        )
        try:
            with pikepdf.open(input_path) as pdf:
                pdf.save(output_path, encryption=encryption)
        except (pikepdf.PdfError, ValueError) as exc:
            raise EncryptionBackendError(f"pikepdf failed for {input_path}: {exc}") from exc

    def is_available(self) -> bool:
        return True


class QpdfCliEncryptor:
    """Backend that runs the ``qpdf`` executable as a subprocess."""

    name = "qpdf"

    def __init__(self, binary: str = "qpdf", timeout: Optional[float] = None) -> None:
        self.binary = binary
        self.timeout = timeout

    def build_arguments(self, input_path: Path, output_path: Path, password: str, permissions: DocumentPermissions) -> list[str]:
        return [
            "--encrypt",
            password,
            password,
            str(KEY_LENGTH),
            *permissions.to_qpdf_args(),
            "--",
            str(input_path),
            str(output_path),
        ]

    def build_command(self, args_path: Path) -> list[str]:
        """The password is read by qpdf from ``args_path`` and never appears in the process list."""
        return [self.binary, f"@{args_path}"]

    def encrypt_file(self, input_path: Path, output_path: Path, password: str, permissions: DocumentPermissions) -> None:
        args_path = output_path.with_suffix(".args")
        try:
            _write_private(args_path, "\n".join(self.build_arguments(input_path, output_path, password, permissions)) + "\n")
            result = subprocess.run(
                self.build_command(args_path), capture_output=True, text=True, timeout=self.timeout, check=False
            )
        except FileNotFoundError as exc:
            raise EncryptionBackendError(f"qpdf executable not found: {self.binary}") from exc
        except subprocess.TimeoutExpired as exc:
            raise EncryptionBackendError(f"qpdf timed out after {self.timeout}s on {input_path}") from exc
        finally:
            args_path.unlink(missing_ok=True)

        if result.returncode not in QPDF_SUCCESS_CODES:
            raise EncryptionBackendError(
                f"qpdf exited with {result.returncode} on {input_path}: {result.stderr.strip()}"
            )
        if result.returncode == 3:
            logger.warning(f"qpdf reported warnings for {input_path}: {result.stderr.strip()}")

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None


def _write_private(path: Path, content: str) -> None:
    # owner read/write only
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(content)


def build_encryptor(settings: ServiceSettings) -> PdfEncryptor:
    if settings.encryption_backend == "qpdf":
        return QpdfCliEncryptor(binary=settings.qpdf_binary, timeout=settings.encryption_timeout)
    return PikepdfEncryptor()


@dataclass(frozen=True)
class TempFilePair:
    input_path: Path
    output_path: Path

    def cleanup(self) -> None:
        """Delete both files. Failures are logged and never raised."""
        for path in (self.input_path, self.output_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning(f"Failed to remove temp file {path}: {exc}")


@contextmanager
def temporary_pdf_pair(temp_dir: Path) -> Iterator[TempFilePair]:
    """
    Acquire unique input/output paths in ``temp_dir`` for one encryption call.

    The directory is created if needed. Both files are removed when the block
    exits, whether it returns or raises.
    """
    ensure_directory(temp_dir)
    token = unique_token()
    pair = TempFilePair(
        input_path=temp_dir / f"{TEMP_FILE_PREFIX}{token}-input.pdf",
        output_path=temp_dir / f"{TEMP_FILE_PREFIX}{token}-output.pdf",
    )
    try:
        yield pair
    finally:
        pair.cleanup()


@dataclass(frozen=True)
class EncryptedDocument:
    content: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.content)


class PdfEncryptionService:
    """
    Encrypts PDF bytes through a ``PdfEncryptor`` backend.

    Two entry points exist: ``encrypt`` always applies the default
    permissions (print allowed, no modification, no extraction), while
    ``encrypt_with_permissions`` lets the caller override them.

    A failure is terminal: it is logged with full detail and surfaced as a
    generic ``EncryptionError``. Either the whole encrypted buffer is
    returned or an error is raised.
    """

    def __init__(self, encryptor: PdfEncryptor, temp_dir: Path) -> None:
        self.encryptor = encryptor
        self.temp_dir = Path(temp_dir)

    def encrypt(self, pdf_bytes: bytes, password: str) -> bytes:
        return self._encrypt(pdf_bytes, password, DEFAULT_PERMISSIONS)

    def encrypt_with_permissions(
        self,
        pdf_bytes: bytes,
        password: str,
        permissions: Optional[Mapping[str, Any]] = None,
    ) -> bytes:
        try:
            effective = DEFAULT_PERMISSIONS.merged(permissions)
        except ValueError as exc:
            logger.warning(f"Rejected permission overrides {permissions!r}: {exc}")
            raise ValidationError("Invalid permissions", details=[str(exc)]) from exc
        logger.info(f"Encrypting PDF with permissions {effective}")
        return self._encrypt(pdf_bytes, password, effective)

    def _encrypt(self, pdf_bytes: bytes, password: str, permissions: DocumentPermissions) -> bytes:
        if not pdf_bytes:
            logger.error("Encryption called without input bytes")
            raise EncryptionError("No PDF input")

        try:
            with temporary_pdf_pair(self.temp_dir) as pair:
                pair.input_path.write_bytes(pdf_bytes)
                logger.info(f"Starting PDF encryption via {self.encryptor.name} (password: ***, input: {pair.input_path})")
                self.encryptor.encrypt_file(pair.input_path, pair.output_path, password, permissions)
                encrypted = pair.output_path.read_bytes()
        except (OSError, EncryptionBackendError) as exc:
            logger.error(f"Failed to encrypt PDF: {exc}", exc_info=True)
            raise EncryptionError("Failed to encrypt PDF") from exc

        if not encrypted:
            logger.error(f"Backend {self.encryptor.name} produced an empty file")
            raise EncryptionError("Encryption produced no output")

        logger.info(f"PDF encrypted successfully (input: {len(pdf_bytes)} bytes, output: {len(encrypted)} bytes)")
        return encrypted
