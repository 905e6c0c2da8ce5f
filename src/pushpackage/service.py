"""Push package facade: descriptor, staging, manifest, signature, archive."""

from __future__ import annotations

from pathlib import Path

from pushpackage.config import Settings
from pushpackage.failures import PipelineStage, PushPackageError
from pushpackage.packs.archive import ZipAssembler
from pushpackage.packs.descriptor import WebsiteDescriptorBuilder
from pushpackage.packs.manifest import ManifestHasher
from pushpackage.packs.signing import CertificateBundle, ManifestSigner
from pushpackage.packs.staging import PackageStaging
from pushpackage.packs.website import IconSet, WebsitePushConfiguration
from pushpackage.tokens import PlainTokenCodec, TokenCodec, build_token_codec, parse_authorization
from pushpackage.util.logging import get_logger, redact

logger = get_logger(__name__)


class PushPackageService:
    """Builds a fresh signed push package per user.

    Every call walks NOT_STARTED -> STAGED -> HASHED -> SIGNED -> ASSEMBLED -> DONE
    once, or ends in FAILED. The raised error carries the last stage reached in
    ``stage`` and the failing step in ``step``; nothing is retried or cached.
    """

    def __init__(
        self,
        config: WebsitePushConfiguration,
        icon_set: IconSet,
        certificate: CertificateBundle,
        token_codec: TokenCodec | None = None,
        tmp_dir: Path | None = None,
    ) -> None:
        self.config = config
        self.icon_set = icon_set
        self.certificate = certificate
        self.token_codec = token_codec or PlainTokenCodec()
        self.descriptor_builder = WebsiteDescriptorBuilder()
        self.staging = PackageStaging(tmp_dir)
        self.hasher = ManifestHasher()
        self.signer = ManifestSigner()
        self.assembler = ZipAssembler(tmp_dir)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PushPackageService":
        return cls(
            config=settings.website_configuration(),
            icon_set=IconSet.from_directory(Path(settings.iconset_dir), strict=settings.iconset_strict),
            certificate=settings.certificate_bundle(),
            token_codec=build_token_codec(settings.auth_token_min_length),
            tmp_dir=settings.package_tmp_path(),
        )

    def get_website_push_id(self) -> str:
        return self.config.website_push_id

    def get_count_of_expected_arguments(self) -> int:
        return self.config.count_of_expected_arguments()

    def encode_user_id(self, user_id: str) -> str:
        return self.token_codec.encode(user_id)

    def parse_user_id(self, raw_authorization: str) -> str:
        return parse_authorization(raw_authorization, self.token_codec)

    def create_push_package(self, user_id: str) -> Path:
        stage = PipelineStage.NOT_STARTED
        try:
            descriptor = self.descriptor_builder.build(self.config, self.encode_user_id(user_id))
            with self.staging.stage(descriptor, self.icon_set) as staged:
                stage = self._advance(PipelineStage.STAGED)
                manifest = self.hasher.compute_manifest(staged)
                stage = self._advance(PipelineStage.HASHED)
                signature = self.signer.sign(manifest, self.certificate)
                stage = self._advance(PipelineStage.SIGNED)
                archive_path = self.assembler.assemble(
                    staged, signature.manifest_bytes, signature.der, self.icon_set
                )
                stage = self._advance(PipelineStage.ASSEMBLED)
        except PushPackageError as exc:
            exc.stage = stage
            self._advance(PipelineStage.FAILED)
            logger.error(
                "Push package for %s failed after %s: %s",
                self.config.website_push_id,
                stage.value,
                redact(f"{exc} {exc.context()}", extra_secrets=[self.certificate.password or ""]),
            )
            raise
        self._advance(PipelineStage.DONE)
        logger.info("Created push package %s for %s", archive_path, self.config.website_push_id)
        return archive_path

    def _advance(self, stage: PipelineStage) -> PipelineStage:
        logger.debug("Push package pipeline reached %s", stage.value)
        return stage
