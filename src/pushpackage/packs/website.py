"""Website push configuration and icon set inputs."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping

from pydantic import BaseModel, ConfigDict, Field

from pushpackage.failures import IconSetLoadError

URL_ARGUMENT_PLACEHOLDER = "%@"
ICONSET_DIR = "icon.iconset"
REQUIRED_ICON_NAMES = (
    "icon_16x16.png",
    "icon_16x16@2x.png",
    "icon_32x32.png",
    "icon_32x32@2x.png",
    "icon_128x128.png",
    "icon_128x128@2x.png",
)
WEBSITE_JSON = "website.json"
MANIFEST_JSON = "manifest.json"
SIGNATURE = "signature"
RESERVED_NAMES = {WEBSITE_JSON, MANIFEST_JSON, SIGNATURE}


class WebsitePushConfiguration(BaseModel):
    """Immutable description of the website registering for push notifications."""

    model_config = ConfigDict(frozen=True)

    website_name: str
    organization_name: str = ""
    website_push_id: str
    allowed_domains: tuple[str, ...]
    url_format_string: str
    web_service_url: str
    url_argument_count: int | None = Field(default=None, ge=0)

    def count_of_expected_arguments(self) -> int:
        if self.url_argument_count is not None:
            return self.url_argument_count
        return self.url_format_string.count(URL_ARGUMENT_PLACEHOLDER)


def is_safe_relative_path(path: str) -> bool:
    if not path or path.startswith(("/", "\\")) or ":" in path or "\\" in path:
        return False
    parts = Path(path).parts
    if any(part in ("..", ".") for part in parts):
        return False
    return True


@dataclass(frozen=True)
class IconSet:
    """Ordered ``(relative filename, bytes)`` pairs copied verbatim into a package."""

    icons: tuple[tuple[str, bytes], ...]

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for name, _ in self.icons:
            if not is_safe_relative_path(name):
                raise IconSetLoadError(f"Icon name is not a safe relative path: {name}", member=name)
            if name in RESERVED_NAMES:
                raise IconSetLoadError(f"Icon name collides with a package file: {name}", member=name)
            if name in seen:
                raise IconSetLoadError(f"Duplicate icon name: {name}", member=name)
            seen.add(name)

    def __iter__(self) -> Iterator[tuple[str, bytes]]:
        return iter(self.icons)

    def __len__(self) -> int:
        return len(self.icons)

    @property
    def filenames(self) -> list[str]:
        return [name for name, _ in self.icons]

    @classmethod
    def from_mapping(cls, icons: Mapping[str, bytes]) -> "IconSet":
        return cls(tuple((name, bytes(payload)) for name, payload in icons.items()))

    @classmethod
    def from_directory(
        cls, directory: Path, prefix: str = ICONSET_DIR, strict: bool = True
    ) -> "IconSet":
        """Load icons from ``directory``.

        In strict mode exactly the Apple resolutions in ``REQUIRED_ICON_NAMES``
        are loaded, in that order, and a missing one is an error. Otherwise
        every PNG in the directory is loaded in name order.
        """
        if not directory.is_dir():
            raise IconSetLoadError(f"Icon set directory not found: {directory}", path=directory)
        if strict:
            names = list(REQUIRED_ICON_NAMES)
        else:
            names = sorted(path.name for path in directory.glob("*.png") if path.is_file())
        icons: list[tuple[str, bytes]] = []
        for name in names:
            path = directory / name
            try:
                payload = path.read_bytes()
            except OSError as exc:
                raise IconSetLoadError(f"Can not read icon {path}: {exc}", path=path) from exc
            icons.append((f"{prefix}/{name}" if prefix else name, payload))
        return cls(tuple(icons))
