"""Detached PKCS#7 signing of the package manifest."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from pathlib import Path
import re
import tempfile
from typing import Any

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7, pkcs12

from pushpackage.failures import (
    BinaryDecodingError,
    CertificateLoadError,
    CertificateParseError,
    ManifestEncodingError,
    ManifestWriteError,
    PrivateKeyExtractionError,
    SignatureReadError,
    SignatureWriteError,
    SigningError,
    UnexpectedSignatureContentError,
)
from pushpackage.packs.descriptor import canonical_json
from pushpackage.packs.manifest import Manifest
from pushpackage.packs.website import MANIFEST_JSON, SIGNATURE
from pushpackage.util.logging import get_logger

logger = get_logger(__name__)

PKCS12_SUFFIXES = {".p12", ".pfx"}
_PEM_BLOCK = re.compile(
    rb"-----BEGIN (?P<label>[A-Z0-9 ]+)-----(?P<body>.*?)-----END (?P=label)-----",
    re.DOTALL,
)
_BOUNDARY = re.compile(r'boundary="?(?P<boundary>[^";\r\n]+)"?')
_PART_SPLIT = re.compile(r"\r?\n\r?\n")


@dataclass(frozen=True)
class CertificateBundle:
    """Where to find the signing certificate, its key and the optional intermediate."""

    path: Path
    password: str | None = None
    intermediate_path: Path | None = None


@dataclass(frozen=True)
class SigningCertificate:
    certificate: x509.Certificate
    private_key: Any
    intermediates: tuple[x509.Certificate, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DetachedSignature:
    manifest_bytes: bytes
    envelope: str
    der: bytes


def _password_bytes(password: str | None) -> bytes | None:
    return password.encode("utf-8") if password else None


def _read(path: Path, what: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise CertificateLoadError(f"Can not get {what} content from {path}: {exc}", path=path) from exc


def _pem_blocks(data: bytes, path: Path) -> list[tuple[str, bytes]]:
    blocks = [(match.group("label").decode("ascii"), match.group(0)) for match in _PEM_BLOCK.finditer(data)]
    if not blocks or len(blocks) != data.count(b"-----BEGIN "):
        raise CertificateParseError(f"Can not read PEM data from {path}", path=path)
    return blocks


def _load_pem_bundle(data: bytes, bundle: CertificateBundle) -> tuple[x509.Certificate, Any]:
    blocks = _pem_blocks(data, bundle.path)
    certificate_blocks = [block for label, block in blocks if label in ("CERTIFICATE", "TRUSTED CERTIFICATE")]
    if not certificate_blocks:
        raise CertificateParseError(f"No certificate found in {bundle.path}", path=bundle.path)
    try:
        certificate = x509.load_pem_x509_certificate(certificate_blocks[0])
    except ValueError as exc:
        raise CertificateParseError(
            f"Can not read certificate data from {bundle.path}: {exc}", path=bundle.path
        ) from exc
    key_blocks = [block for label, block in blocks if label.endswith("PRIVATE KEY")]
    if not key_blocks:
        raise PrivateKeyExtractionError(f"No private key found in {bundle.path}", path=bundle.path)
    key_block = key_blocks[0]
    encrypted = key_block.startswith(b"-----BEGIN ENCRYPTED") or b"Proc-Type: 4,ENCRYPTED" in key_block
    try:
        private_key = serialization.load_pem_private_key(
            key_block, password=_password_bytes(bundle.password) if encrypted else None
        )
    except (TypeError, ValueError, UnsupportedAlgorithm) as exc:
        raise PrivateKeyExtractionError(
            f"Can not get private key from {bundle.path}: {exc}", path=bundle.path
        ) from exc
    return certificate, private_key


def _load_pkcs12_bundle(data: bytes, bundle: CertificateBundle) -> tuple[x509.Certificate, Any]:
    try:
        private_key, certificate, _ = pkcs12.load_key_and_certificates(
            data, _password_bytes(bundle.password)
        )
    except (TypeError, ValueError, UnsupportedAlgorithm) as exc:
        raise CertificateParseError(
            f"Can not read PKCS#12 data from {bundle.path}: {exc}", path=bundle.path
        ) from exc
    if certificate is None:
        raise CertificateParseError(f"No certificate found in {bundle.path}", path=bundle.path)
    if private_key is None:
        raise PrivateKeyExtractionError(f"No private key found in {bundle.path}", path=bundle.path)
    return certificate, private_key


def _load_intermediates(path: Path) -> tuple[x509.Certificate, ...]:
    data = _read(path, "intermediate certificate")
    try:
        if b"-----BEGIN" in data:
            return tuple(x509.load_pem_x509_certificates(data))
        return (x509.load_der_x509_certificate(data),)
    except ValueError as exc:
        raise CertificateParseError(
            f"Can not read intermediate certificate from {path}: {exc}", path=path
        ) from exc


def _public_der(key: Any) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def load_signing_certificate(bundle: CertificateBundle) -> SigningCertificate:
    """Load the certificate, its private key and the optional intermediate.

    Reading, parsing and key extraction fail with distinct errors so a badly
    provisioned certificate can be diagnosed from the message alone.
    """
    data = _read(bundle.path, "certificate")
    if bundle.path.suffix.lower() in PKCS12_SUFFIXES:
        certificate, private_key = _load_pkcs12_bundle(data, bundle)
    else:
        certificate, private_key = _load_pem_bundle(data, bundle)
    if _public_der(private_key.public_key()) != _public_der(certificate.public_key()):
        raise PrivateKeyExtractionError(
            f"Private key in {bundle.path} does not belong to its certificate", path=bundle.path
        )
    intermediates: tuple[x509.Certificate, ...] = ()
    if bundle.intermediate_path is not None:
        intermediates = _load_intermediates(bundle.intermediate_path)
    return SigningCertificate(certificate=certificate, private_key=private_key, intermediates=intermediates)


def encode_manifest(manifest: Manifest) -> bytes:
    try:
        return canonical_json(manifest.to_dict()).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise ManifestEncodingError(f"Can not encode manifest data to JSON: {exc}") from exc


def extract_der_signature(envelope: str) -> bytes:
    """Strip the S/MIME envelope and decode the base64 signature part to DER."""
    boundary_match = _BOUNDARY.search(envelope)
    if boundary_match is None:
        raise UnexpectedSignatureContentError("Signature envelope has no MIME boundary")
    boundary = boundary_match.group("boundary")
    parts = envelope.split(f"--{boundary}")
    if len(parts) < 3:
        raise UnexpectedSignatureContentError(f"Signature envelope has no parts delimited by {boundary}")
    signature_parts = [
        part for part in parts[1:]
        if "content-disposition:" in part.lower() and "pkcs7-signature" in part.lower()
    ]
    if not signature_parts:
        raise UnexpectedSignatureContentError("Signature envelope has no attached pkcs7-signature part")
    sections = _PART_SPLIT.split(signature_parts[0].strip("\r\n"), maxsplit=1)
    if len(sections) != 2:
        raise UnexpectedSignatureContentError("Signature part has no body")
    headers, body = sections
    if "base64" not in headers.lower():
        raise UnexpectedSignatureContentError("Signature part is not base64 encoded")
    encoded = "".join(body.split())
    if not encoded:
        raise UnexpectedSignatureContentError("Signature part body is empty")
    try:
        der = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise BinaryDecodingError(f"Can not create DER signature by decoding base64: {exc}") from exc
    if not der or der[0] != 0x30:
        raise BinaryDecodingError("Decoded signature is not a DER sequence")
    return der


class ManifestSigner:
    def sign(self, manifest: Manifest, bundle: CertificateBundle) -> DetachedSignature:
        manifest_bytes = encode_manifest(manifest)
        try:
            work = tempfile.TemporaryDirectory(prefix="pushPackage-sign-")
        except OSError as exc:
            raise ManifestWriteError(f"Can not create temporary signing directory: {exc}") from exc
        with work as work_dir:
            root = Path(work_dir)
            manifest_path = root / MANIFEST_JSON
            try:
                manifest_path.write_bytes(manifest_bytes)
            except OSError as exc:
                raise ManifestWriteError(
                    f"Can not save {MANIFEST_JSON}: {exc}", path=manifest_path
                ) from exc

            signing_certificate = load_signing_certificate(bundle)

            envelope_path = root / f"{SIGNATURE}.pem"
            try:
                builder = (
                    pkcs7.PKCS7SignatureBuilder()
                    .set_data(manifest_bytes)
                    .add_signer(
                        signing_certificate.certificate,
                        signing_certificate.private_key,
                        hashes.SHA256(),
                    )
                )
                for intermediate in signing_certificate.intermediates:
                    builder = builder.add_certificate(intermediate)
                envelope_bytes = builder.sign(
                    serialization.Encoding.SMIME,
                    [pkcs7.PKCS7Options.DetachedSignature, pkcs7.PKCS7Options.Binary],
                )
                envelope_path.write_bytes(envelope_bytes)
            except (TypeError, ValueError, UnsupportedAlgorithm, OSError) as exc:
                raise SigningError(f"Can not sign manifest: {exc}", path=envelope_path) from exc

            try:
                envelope = envelope_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise SignatureReadError(
                    f"Can not read PEM signature from {envelope_path}: {exc}", path=envelope_path
                ) from exc

            der = extract_der_signature(envelope)

            signature_path = root / SIGNATURE
            try:
                signature_path.write_bytes(der)
            except OSError as exc:
                raise SignatureWriteError(
                    f"Can not save DER signature to {signature_path}: {exc}", path=signature_path
                ) from exc
            logger.debug("Signed manifest of %d entries, signature is %d bytes", len(manifest), len(der))
            return DetachedSignature(manifest_bytes=manifest_bytes, envelope=envelope, der=der)
