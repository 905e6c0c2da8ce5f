"""Zip assembly of a finished push package."""

from __future__ import annotations

from contextlib import suppress
import os
from pathlib import Path
import tempfile
import zipfile

from pushpackage.failures import ArchiveAddError, ArchiveCloseError, ArchiveCreateError
from pushpackage.packs.staging import StagedPackage
from pushpackage.packs.website import MANIFEST_JSON, SIGNATURE, WEBSITE_JSON, IconSet

# Fixed timestamp keeps identical inputs byte-identical.
MEMBER_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def _member_info(name: str) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=MEMBER_DATE_TIME)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = 0o644 << 16
    return info


class ZipAssembler:
    def __init__(self, tmp_dir: Path | None = None) -> None:
        self.tmp_dir = tmp_dir

    def assemble(
        self,
        staged: StagedPackage,
        manifest_bytes: bytes,
        signature_bytes: bytes,
        icon_set: IconSet,
    ) -> Path:
        """Write the package zip and hand its path to the caller, who owns it."""
        try:
            handle, name = tempfile.mkstemp(prefix="pushPackage-", suffix=".zip", dir=self.tmp_dir)
            os.close(handle)
        except OSError as exc:
            raise ArchiveCreateError(f"Can not create ZIP archive: {exc}", path=self.tmp_dir) from exc
        archive_path = Path(name)
        try:
            self._write(archive_path, staged, manifest_bytes, signature_bytes, icon_set)
        except BaseException:
            with suppress(OSError):
                archive_path.unlink()
            raise
        return archive_path

    def _write(
        self,
        archive_path: Path,
        staged: StagedPackage,
        manifest_bytes: bytes,
        signature_bytes: bytes,
        icon_set: IconSet,
    ) -> None:
        try:
            archive = zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED)
        except OSError as exc:
            raise ArchiveCreateError(
                f"Can not create ZIP archive {archive_path}: {exc}", path=archive_path
            ) from exc
        members: list[tuple[str, Path | bytes]] = [(WEBSITE_JSON, staged.descriptor_path)]
        members.extend((name, staged.root / name) for name in icon_set.filenames)
        members.append((MANIFEST_JSON, manifest_bytes))
        members.append((SIGNATURE, signature_bytes))
        try:
            for member, source in members:
                try:
                    payload = source.read_bytes() if isinstance(source, Path) else source
                    archive.writestr(_member_info(member), payload)
                except (OSError, ValueError) as exc:
                    raise ArchiveAddError(
                        f"Can not add {member} to ZIP archive {archive_path}: {exc}",
                        path=archive_path,
                        member=member,
                    ) from exc
        except BaseException:
            with suppress(OSError, ValueError):
                archive.close()
            raise
        try:
            archive.close()
        except (OSError, ValueError) as exc:
            raise ArchiveCloseError(
                f"Can not close ZIP archive {archive_path}: {exc}", path=archive_path
            ) from exc
