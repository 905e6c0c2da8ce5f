"""Integrity manifest over the staged package files."""

from __future__ import annotations

from dataclasses import dataclass
from hashlib import sha1
from pathlib import Path

from pushpackage.failures import DigestComputationError
from pushpackage.packs.staging import StagedPackage


@dataclass(frozen=True)
class Manifest:
    entries: dict[str, str]

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, name: object) -> bool:
        return name in self.entries

    def to_dict(self) -> dict[str, str]:
        return dict(sorted(self.entries.items()))


def hash_file(path: Path) -> str:
    # SHA-1 is what the push package format mandates.
    digest = sha1()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(8192), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ManifestHasher:
    def compute_manifest(self, staged: StagedPackage) -> Manifest:
        entries: dict[str, str] = {}
        for path in staged.files():
            name = staged.relative_name(path)
            try:
                entries[name] = hash_file(path)
            except OSError as exc:
                raise DigestComputationError(
                    f"Can not calculate SHA-1 of {name}: {exc}", path=path, member=name
                ) from exc
        return Manifest(entries=dict(sorted(entries.items())))
