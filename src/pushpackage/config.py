"""Configuration settings for the push package service."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from pushpackage.packs.signing import CertificateBundle
from pushpackage.packs.website import WebsitePushConfiguration


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or overrides."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, populate_by_name=True
    )

    website_name: str = Field(default="", validation_alias="WEBSITE_NAME")
    organization_name: str = Field(default="", validation_alias="ORGANIZATION_NAME")
    website_push_id: str = Field(default="", validation_alias="WEBSITE_PUSH_ID")
    allowed_domains: Annotated[list[str], NoDecode] = Field(
        default_factory=list, validation_alias="ALLOWED_DOMAINS"
    )
    url_format_string: str = Field(default="", validation_alias="URL_FORMAT_STRING")
    url_argument_count: int | None = Field(default=None, validation_alias="URL_ARGUMENT_COUNT")
    web_service_url: str = Field(default="", validation_alias="WEB_SERVICE_URL")
    certificate_path: str = Field(default="", validation_alias="CERTIFICATE_PATH")
    certificate_password: str | None = Field(default=None, validation_alias="CERTIFICATE_PASSWORD")
    intermediate_certificate_path: str | None = Field(
        default=None, validation_alias="INTERMEDIATE_CERTIFICATE_PATH"
    )
    iconset_dir: str = Field(default="icon.iconset", validation_alias="ICONSET_DIR")
    iconset_strict: bool = Field(default=True, validation_alias="ICONSET_STRICT")
    package_tmp_dir: str | None = Field(default=None, validation_alias="PACKAGE_TMP_DIR")
    device_db_path: str = Field(default="push_devices.db", validation_alias="DEVICE_DB_PATH")
    max_payload_bytes: int = Field(default=256, validation_alias="MAX_PAYLOAD_BYTES")
    auth_token_min_length: int = Field(default=0, validation_alias="AUTH_TOKEN_MIN_LENGTH")
    operator_token: str | None = Field(default=None, validation_alias="OPERATOR_TOKEN")

    @field_validator("allowed_domains", mode="before")
    @classmethod
    def _split_domains(cls, value: object) -> object:
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("["):
                return json.loads(text)
            return [item.strip() for item in text.split(",") if item.strip()]
        return value

    def website_configuration(self) -> WebsitePushConfiguration:
        return WebsitePushConfiguration(
            website_name=self.website_name,
            organization_name=self.organization_name,
            website_push_id=self.website_push_id,
            allowed_domains=tuple(self.allowed_domains),
            url_format_string=self.url_format_string,
            web_service_url=self.web_service_url,
            url_argument_count=self.url_argument_count,
        )

    def certificate_bundle(self) -> CertificateBundle:
        return CertificateBundle(
            path=Path(self.certificate_path),
            password=self.certificate_password,
            intermediate_path=(
                Path(self.intermediate_certificate_path)
                if self.intermediate_certificate_path
                else None
            ),
        )

    def package_tmp_path(self) -> Path | None:
        return Path(self.package_tmp_dir) if self.package_tmp_dir else None
