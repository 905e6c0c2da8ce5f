from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
import subprocess
from typing import Any

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from pushpackage.packs.signing import CertificateBundle
from pushpackage.packs.website import IconSet, WebsitePushConfiguration
from pushpackage.service import PushPackageService
from pushpackage.storage import PushNotificationBackend

CERT_PASSWORD = "secret"
ICON_16 = b"\x89PNG\r\n\x1a\n-16x16-icon"
ICON_32 = b"\x89PNG\r\n\x1a\n-32x32-icon"


def make_certificate(common_name: str = "web.com.example.test"):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    return certificate, key


def certificate_pem(certificate) -> bytes:
    return certificate.public_bytes(serialization.Encoding.PEM)


def key_pem(key, password: str | None = CERT_PASSWORD) -> bytes:
    encryption = (
        serialization.BestAvailableEncryption(password.encode("utf-8"))
        if password
        else serialization.NoEncryption()
    )
    return key.private_bytes(
        serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, encryption
    )


def openssl_verify(work_dir: Path, signature: bytes, content: bytes) -> bool:
    """Check a DER detached signature over ``content`` with the openssl CLI."""
    signature_path = work_dir / "signature.der"
    signature_path.write_bytes(signature)
    content_path = work_dir / "signed-content"
    content_path.write_bytes(content)
    command = [
        "openssl", "cms", "-verify", "-binary", "-noverify",
        "-inform", "DER", "-in", str(signature_path),
        "-content", str(content_path), "-out", str(work_dir / "verified"),
    ]
    return subprocess.run(command, capture_output=True).returncode == 0

@pytest.fixture(scope="session")
def certificate_pair():
    return make_certificate()


@pytest.fixture
def certificate_bundle(tmp_path: Path, certificate_pair) -> CertificateBundle:
    certificate, key = certificate_pair
    path = tmp_path / "certificate.pem"
    path.write_bytes(certificate_pem(certificate) + key_pem(key))
    return CertificateBundle(path=path, password=CERT_PASSWORD)


@pytest.fixture
def website_config() -> WebsitePushConfiguration:
    return WebsitePushConfiguration(
        website_name="Example",
        organization_name="Example Inc.",
        website_push_id="web.com.example.test",
        allowed_domains=("https://example.com",),
        url_format_string="https://example.com/%@",
        web_service_url="https://push.example.com",
    )


@pytest.fixture
def icon_set() -> IconSet:
    return IconSet.from_mapping(
        {
            "icon.iconset/icon_16x16.png": ICON_16,
            "icon.iconset/icon_32x32.png": ICON_32,
        }
    )


@pytest.fixture
def package_dir(tmp_path: Path) -> Path:
    path = tmp_path / "packages"
    path.mkdir()
    return path


@pytest.fixture
def service(website_config, icon_set, certificate_bundle, package_dir) -> PushPackageService:
    return PushPackageService(
        config=website_config,
        icon_set=icon_set,
        certificate=certificate_bundle,
        tmp_dir=package_dir,
    )


class InMemoryBackend(PushNotificationBackend):
    def __init__(self) -> None:
        self.devices: dict[str, str] = {}
        self.sent: list[tuple[str, str]] = []
        self.logs: list[Any] = []

    def add_device(self, user_id: str, device_token: str) -> bool:
        self.devices[user_id] = device_token
        return True

    def delete_device(self, user_id: str, device_token: str) -> bool:
        return self.devices.pop(user_id, None) == device_token

    def get_device_token(self, user_id: str) -> str:
        return self.devices.get(user_id, "")

    def send_push_notification(self, json_payload: str, device_token: str) -> bool:
        self.sent.append((json_payload, device_token))
        return True

    def process_error_log(self, log: list[Any]) -> bool:
        self.logs.extend(log)
        return True
