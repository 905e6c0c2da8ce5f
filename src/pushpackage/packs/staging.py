"""Temporary package directory holding the descriptor and icon files."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
import shutil
import tempfile
from typing import Iterator

from pushpackage.failures import DescriptorWriteError, IconCopyError, StagingDirectoryError
from pushpackage.packs.descriptor import WebsiteDescriptor
from pushpackage.packs.website import WEBSITE_JSON, IconSet
from pushpackage.util.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StagedPackage:
    root: Path
    descriptor_path: Path
    icon_paths: tuple[Path, ...]

    def files(self) -> list[Path]:
        return sorted(path for path in self.root.rglob("*") if path.is_file())

    def relative_name(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()


class PackageStaging:
    def __init__(self, tmp_dir: Path | None = None) -> None:
        self.tmp_dir = tmp_dir

    @contextmanager
    def stage(self, descriptor: WebsiteDescriptor, icon_set: IconSet) -> Iterator[StagedPackage]:
        """Materialize a package directory; it is removed when the block exits."""
        try:
            root = Path(tempfile.mkdtemp(prefix="pushPackage-", dir=self.tmp_dir))
        except OSError as exc:
            raise StagingDirectoryError(
                f"Can not create temporary package directory in {self.tmp_dir or tempfile.gettempdir()}: {exc}",
                path=self.tmp_dir,
            ) from exc
        try:
            yield self._populate(root, descriptor, icon_set)
        finally:
            shutil.rmtree(root, ignore_errors=True)
            logger.debug("Removed staging directory %s", root)

    def _populate(self, root: Path, descriptor: WebsiteDescriptor, icon_set: IconSet) -> StagedPackage:
        descriptor_path = root / WEBSITE_JSON
        try:
            descriptor_path.write_bytes(descriptor.content)
        except OSError as exc:
            raise DescriptorWriteError(
                f"Can not save {WEBSITE_JSON} to package: {exc}", path=descriptor_path
            ) from exc
        icon_paths: list[Path] = []
        for name, payload in icon_set:
            target = root / name
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(payload)
            except OSError as exc:
                raise IconCopyError(f"Can not copy icon {name}: {exc}", path=target, member=name) from exc
            icon_paths.append(target)
        return StagedPackage(root=root, descriptor_path=descriptor_path, icon_paths=tuple(icon_paths))
