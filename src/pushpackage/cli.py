"""Command-line interface."""

from __future__ import annotations

import argparse
from pathlib import Path
import shutil
import sys
from typing import Any

from pushpackage.config import Settings
from pushpackage.failures import PushPackageError
from pushpackage.service import PushPackageService


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Safari push package builder")
    parser.add_argument("--certificate", dest="certificate")
    parser.add_argument("--iconset", dest="iconset")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Build a signed push package")
    build.add_argument("--user-id", dest="user_id", required=True)
    build.add_argument("--output", dest="output", required=True)

    token = subparsers.add_parser("token", help="Print the authentication token for a user")
    token.add_argument("--user-id", dest="user_id", required=True)
    return parser.parse_args(argv)


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    data: dict[str, Any] = settings.model_dump()
    if args.certificate:
        data["certificate_path"] = args.certificate
    if args.iconset:
        data["iconset_dir"] = args.iconset
    return Settings(**data)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = apply_overrides(Settings(), args)
    try:
        service = PushPackageService.from_settings(settings)
        if args.command == "token":
            print(service.encode_user_id(args.user_id))
            return 0
        package_path = service.create_push_package(args.user_id)
    except PushPackageError as exc:
        print(f"error [{exc.step}]: {exc}", file=sys.stderr)
        return 1
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(package_path), output)
    print("Push package:", output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
