from pathlib import Path

import pytest

from pushpackage.failures import DescriptorWriteError, IconCopyError, StagingDirectoryError
from pushpackage.packs import staging as staging_module
from pushpackage.packs.descriptor import WebsiteDescriptorBuilder
from pushpackage.packs.staging import PackageStaging
from pushpackage.packs.website import IconSet

from conftest import ICON_16


def _descriptor(website_config):
    return WebsiteDescriptorBuilder().build(website_config, "abc123")


def test_stage_writes_descriptor_and_icons(website_config, icon_set, package_dir: Path) -> None:
    descriptor = _descriptor(website_config)
    with PackageStaging(package_dir).stage(descriptor, icon_set) as staged:
        assert staged.descriptor_path.read_bytes() == descriptor.content
        assert (staged.root / "icon.iconset" / "icon_16x16.png").read_bytes() == ICON_16
        assert [staged.relative_name(path) for path in staged.files()] == [
            "icon.iconset/icon_16x16.png",
            "icon.iconset/icon_32x32.png",
            "website.json",
        ]
        root = staged.root
    assert not root.exists()
    assert list(package_dir.iterdir()) == []


def test_stage_removes_directory_on_error(website_config, icon_set, package_dir: Path) -> None:
    with pytest.raises(RuntimeError):
        with PackageStaging(package_dir).stage(_descriptor(website_config), icon_set):
            raise RuntimeError("boom")
    assert list(package_dir.iterdir()) == []


def test_missing_tmp_dir_is_staging_error(website_config, icon_set, tmp_path: Path) -> None:
    staging = PackageStaging(tmp_path / "does-not-exist")
    with pytest.raises(StagingDirectoryError):
        with staging.stage(_descriptor(website_config), icon_set):
            pass


def test_icon_copy_error_names_file(website_config, package_dir: Path) -> None:
    # "icon" is written as a file, so "icon/nested.png" has no directory to go into.
    icon_set = IconSet.from_mapping({"icon": b"a", "icon/nested.png": b"b"})
    with pytest.raises(IconCopyError) as excinfo:
        with PackageStaging(package_dir).stage(_descriptor(website_config), icon_set):
            pass
    assert excinfo.value.member == "icon/nested.png"
    assert "icon/nested.png" in str(excinfo.value)
    assert list(package_dir.iterdir()) == []


def test_descriptor_write_error(
    website_config, icon_set, package_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    original = staging_module.Path.write_bytes

    def failing_write(self, data):  # noqa: ANN001
        if self.name == "website.json":
            raise PermissionError("read-only")
        return original(self, data)

    monkeypatch.setattr(staging_module.Path, "write_bytes", failing_write)
    with pytest.raises(DescriptorWriteError):
        with PackageStaging(package_dir).stage(_descriptor(website_config), icon_set):
            pass
    assert list(package_dir.iterdir()) == []
