from pathlib import Path

import pytest

from pushpackage.failures import IconSetLoadError
from pushpackage.packs.website import REQUIRED_ICON_NAMES, IconSet


def _write_icons(directory: Path, names: tuple[str, ...]) -> None:
    directory.mkdir()
    for name in names:
        (directory / name).write_bytes(name.encode("utf-8"))


def test_from_directory_loads_required_icons_in_order(tmp_path: Path) -> None:
    source = tmp_path / "icons"
    _write_icons(source, tuple(reversed(REQUIRED_ICON_NAMES)))
    icon_set = IconSet.from_directory(source)
    assert icon_set.filenames == [f"icon.iconset/{name}" for name in REQUIRED_ICON_NAMES]
    assert dict(icon_set)["icon.iconset/icon_16x16.png"] == b"icon_16x16.png"


def test_from_directory_strict_requires_every_resolution(tmp_path: Path) -> None:
    source = tmp_path / "icons"
    _write_icons(source, REQUIRED_ICON_NAMES[:2])
    with pytest.raises(IconSetLoadError) as excinfo:
        IconSet.from_directory(source)
    assert excinfo.value.path == source / REQUIRED_ICON_NAMES[2]


def test_from_directory_lenient_takes_every_png(tmp_path: Path) -> None:
    source = tmp_path / "icons"
    _write_icons(source, ("b.png", "a.png", "notes.txt"))
    icon_set = IconSet.from_directory(source, strict=False)
    assert icon_set.filenames == ["icon.iconset/a.png", "icon.iconset/b.png"]


def test_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(IconSetLoadError):
        IconSet.from_directory(tmp_path / "missing")


@pytest.mark.parametrize(
    "name",
    ["../escape.png", "/abs.png", "manifest.json", "signature", "c:icon.png"],
)
def test_unsafe_or_reserved_names_rejected(name: str) -> None:
    with pytest.raises(IconSetLoadError):
        IconSet.from_mapping({name: b"x"})


def test_duplicate_names_rejected() -> None:
    with pytest.raises(IconSetLoadError):
        IconSet((("icon.png", b"a"), ("icon.png", b"b")))
