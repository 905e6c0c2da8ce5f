from pathlib import Path
import zipfile

import pytest

from pushpackage.failures import ArchiveAddError, ArchiveCloseError, ArchiveCreateError
from pushpackage.packs.archive import ZipAssembler
from pushpackage.packs.descriptor import WebsiteDescriptorBuilder
from pushpackage.packs.staging import PackageStaging

from conftest import ICON_16, ICON_32


def _stage(website_config, icon_set, package_dir: Path):
    descriptor = WebsiteDescriptorBuilder().build(website_config, "abc123")
    return PackageStaging(package_dir).stage(descriptor, icon_set)


def test_members_in_fixed_order(website_config, icon_set, package_dir: Path) -> None:
    with _stage(website_config, icon_set, package_dir) as staged:
        archive_path = ZipAssembler(package_dir).assemble(staged, b"{}", b"\x30sig", icon_set)
    try:
        with zipfile.ZipFile(archive_path) as archive:
            assert archive.namelist() == [
                "website.json",
                "icon.iconset/icon_16x16.png",
                "icon.iconset/icon_32x32.png",
                "manifest.json",
                "signature",
            ]
            assert archive.read("icon.iconset/icon_16x16.png") == ICON_16
            assert archive.read("icon.iconset/icon_32x32.png") == ICON_32
            assert archive.read("manifest.json") == b"{}"
            assert archive.read("signature") == b"\x30sig"
    finally:
        archive_path.unlink()


def test_identical_inputs_give_identical_archives(website_config, icon_set, package_dir: Path) -> None:
    contents = []
    for _ in range(2):
        with _stage(website_config, icon_set, package_dir) as staged:
            archive_path = ZipAssembler(package_dir).assemble(staged, b"{}", b"sig", icon_set)
        contents.append(archive_path.read_bytes())
        archive_path.unlink()
    assert contents[0] == contents[1]


def test_each_call_gets_a_fresh_path(website_config, icon_set, package_dir: Path) -> None:
    assembler = ZipAssembler(package_dir)
    with _stage(website_config, icon_set, package_dir) as staged:
        first = assembler.assemble(staged, b"{}", b"sig", icon_set)
        second = assembler.assemble(staged, b"{}", b"sig", icon_set)
    assert first != second
    first.unlink()
    second.unlink()


def test_create_error_for_missing_directory(website_config, icon_set, package_dir: Path) -> None:
    with _stage(website_config, icon_set, package_dir) as staged:
        with pytest.raises(ArchiveCreateError):
            ZipAssembler(package_dir / "missing").assemble(staged, b"{}", b"sig", icon_set)


def test_add_error_names_member_and_leaves_nothing(
    website_config, icon_set, package_dir: Path, tmp_path: Path
) -> None:
    output_dir = tmp_path / "archives"
    output_dir.mkdir()
    with _stage(website_config, icon_set, package_dir) as staged:
        (staged.root / "icon.iconset" / "icon_32x32.png").unlink()
        with pytest.raises(ArchiveAddError) as excinfo:
            ZipAssembler(output_dir).assemble(staged, b"{}", b"sig", icon_set)
    assert excinfo.value.member == "icon.iconset/icon_32x32.png"
    assert list(output_dir.iterdir()) == []


def test_close_error_leaves_nothing(
    website_config, icon_set, package_dir: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    output_dir = tmp_path / "archives"
    output_dir.mkdir()
    original = zipfile.ZipFile.close
    failed: list[zipfile.ZipFile] = []

    def failing_close(self):  # noqa: ANN001
        original(self)
        if not failed:
            failed.append(self)
            raise OSError("disk full")

    monkeypatch.setattr(zipfile.ZipFile, "close", failing_close)
    with _stage(website_config, icon_set, package_dir) as staged:
        with pytest.raises(ArchiveCloseError) as excinfo:
            ZipAssembler(output_dir).assemble(staged, b"{}", b"sig", icon_set)
    assert excinfo.value.path.parent == output_dir
    assert list(output_dir.iterdir()) == []
