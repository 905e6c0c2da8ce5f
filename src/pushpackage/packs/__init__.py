"""Push package assembly and signing."""

from pushpackage.packs.archive import ZipAssembler
from pushpackage.packs.descriptor import WebsiteDescriptor, WebsiteDescriptorBuilder
from pushpackage.packs.manifest import Manifest, ManifestHasher
from pushpackage.packs.signing import (
    CertificateBundle,
    DetachedSignature,
    ManifestSigner,
    load_signing_certificate,
)
from pushpackage.packs.staging import PackageStaging, StagedPackage
from pushpackage.packs.website import IconSet, WebsitePushConfiguration

__all__ = [
    "CertificateBundle",
    "DetachedSignature",
    "IconSet",
    "Manifest",
    "ManifestHasher",
    "ManifestSigner",
    "PackageStaging",
    "StagedPackage",
    "WebsiteDescriptor",
    "WebsiteDescriptorBuilder",
    "WebsitePushConfiguration",
    "ZipAssembler",
    "load_signing_certificate",
]
