"""Failure taxonomy for push package creation."""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class PipelineStage(str, Enum):
    """Stages of the push package pipeline, in execution order."""

    NOT_STARTED = "NOT_STARTED"
    STAGED = "STAGED"
    HASHED = "HASHED"
    SIGNED = "SIGNED"
    ASSEMBLED = "ASSEMBLED"
    DONE = "DONE"
    FAILED = "FAILED"


class PushPackageError(Exception):
    """Base class for every terminal pipeline failure.

    ``step`` names the failing pipeline step; ``stage`` is filled in by the
    service with the last stage reached before the failure.
    """

    step = "push_package"

    def __init__(
        self,
        message: str,
        *,
        path: Path | str | None = None,
        member: str | None = None,
    ) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None
        self.member = member
        self.stage: PipelineStage | None = None

    def context(self) -> dict[str, str]:
        details = {"step": self.step}
        if self.stage is not None:
            details["stage"] = self.stage.value
        if self.path is not None:
            details["path"] = str(self.path)
        if self.member is not None:
            details["member"] = self.member
        return details


class DescriptorEncodingError(PushPackageError):
    step = "descriptor_encode"


class IconSetLoadError(PushPackageError):
    step = "icon_set_load"


class StagingDirectoryError(PushPackageError):
    step = "staging_directory"


class DescriptorWriteError(PushPackageError):
    step = "descriptor_write"


class IconCopyError(PushPackageError):
    step = "icon_copy"


class DigestComputationError(PushPackageError):
    step = "digest"


class ManifestEncodingError(PushPackageError):
    step = "manifest_encode"


class ManifestWriteError(PushPackageError):
    step = "manifest_write"


class CertificateLoadError(PushPackageError):
    step = "certificate_load"


class CertificateParseError(PushPackageError):
    step = "certificate_parse"


class PrivateKeyExtractionError(PushPackageError):
    step = "private_key_extract"


class SigningError(PushPackageError):
    step = "sign"


class SignatureReadError(PushPackageError):
    step = "signature_read"


class UnexpectedSignatureContentError(PushPackageError):
    step = "signature_content"


class BinaryDecodingError(PushPackageError):
    step = "signature_decode"


class SignatureWriteError(PushPackageError):
    step = "signature_write"


class ArchiveCreateError(PushPackageError):
    step = "archive_create"


class ArchiveAddError(PushPackageError):
    step = "archive_add"


class ArchiveCloseError(PushPackageError):
    step = "archive_close"


class PackageReadError(PushPackageError):
    """The finished archive could not be read back for streaming."""

    step = "package_read"


class PayloadEncodingError(Exception):
    """A notification payload could not be serialized to JSON."""


class UnknownActionError(Exception):
    """The request path does not name any push service action."""
