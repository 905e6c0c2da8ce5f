"""Request dispatcher for the Safari push notification web service.

Routes, relative to the configured ``webServiceURL``:

* ``POST /v{version}/pushPackages/{websitePushID}`` - download a push package
* ``POST|DELETE /v{version}/devices/{deviceToken}/registrations/{websitePushID}``
* ``POST /v{version}/log`` - errors reported by Safari

plus the operator-facing :meth:`PushNotificationsController.push_notification`.
Handlers take a :class:`PushRequest` and return a :class:`PushResponse`; they
never touch process-wide request state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
import re
from typing import Any, Callable, NamedTuple

from pushpackage.failures import PackageReadError, PayloadEncodingError, UnknownActionError
from pushpackage.service import PushPackageService
from pushpackage.storage import PushNotificationBackend
from pushpackage.util.logging import get_logger, redact

logger = get_logger(__name__)

DEFAULT_MAX_PAYLOAD_BYTES = 256
NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, must-revalidate",
    "Expires": "Thu, 01 Jan 1970 00:00:01 +0000",
}

_ROUTES = {
    "pushPackages": re.compile(r"^(?:/.*)?/v(?P<version>\d+)/pushPackages/(?P<push_id>[^/]+)/?$"),
    "devices": re.compile(
        r"^(?:/.*)?/v(?P<version>\d+)/devices/(?P<device_token>[^/]+)"
        r"/registrations/(?P<push_id>[^/]+)/?$"
    ),
    "log": re.compile(r"^(?:/.*)?/v(?P<version>\d+)/log/?$"),
}


class Route(NamedTuple):
    action: str
    version: int
    params: dict[str, str]


def match_route(path: str) -> Route | None:
    for action, pattern in _ROUTES.items():
        match = pattern.match(path or "")
        if match:
            params = match.groupdict()
            version = int(params.pop("version"))
            return Route(action=action, version=version, params=params)
    return None


@dataclass(frozen=True)
class PushRequest:
    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    params: dict[str, Any] = field(default_factory=dict)

    def header(self, name: str) -> str:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return ""

    def json(self) -> Any:
        """Decoded JSON body, or None when the body is empty or not JSON."""
        if not self.body:
            return None
        try:
            return json.loads(self.body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return None

    def param(self, name: str) -> Any:
        return self.params.get(name)


@dataclass
class PushResponse:
    status: int = 200
    reason: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    file_path: Path | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _error(status: int, reason: str, message: str = "", no_cache: bool = False) -> PushResponse:
    headers = dict(NO_CACHE_HEADERS) if no_cache else {}
    return PushResponse(status=status, reason=reason, headers=headers, body=message.encode("utf-8"))


def _outcome(ok: bool, no_cache: bool = False) -> PushResponse:
    if ok:
        return PushResponse(status=200, headers=dict(NO_CACHE_HEADERS) if no_cache else {})
    return _error(500, "Backend Failure", no_cache=no_cache)


class PushNotificationsController:
    def __init__(
        self,
        service: PushPackageService,
        backend: PushNotificationBackend,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
    ) -> None:
        self.service = service
        self.backend = backend
        self.max_payload_bytes = max_payload_bytes

    def _push_id_matches(self, push_id: str) -> bool:
        return push_id == self.service.get_website_push_id()

    def push_packages(self, request: PushRequest) -> PushResponse:
        route = match_route(request.path)
        if route is None or route.action != "pushPackages":
            return _error(400, "Bad Request", no_cache=True)
        if not self._push_id_matches(route.params["push_id"]):
            logger.warning("Rejected push package request for %s", route.params["push_id"])
            return _error(403, "Forbidden Invalid Parameter websitePushId", no_cache=True)
        if not request.body:
            return _error(400, "Bad Request Missing Parameters", no_cache=True)
        contents = request.json()
        user_id = contents.get("userId") if isinstance(contents, dict) else None
        if isinstance(user_id, int) and not isinstance(user_id, bool):
            user_id = str(user_id)
        if not isinstance(user_id, str) or user_id == "":
            return _error(400, "Bad Request Missing Parameter userId", no_cache=True)
        if user_id != user_id.strip():
            # Header values lose surrounding whitespace in transit, so such an id
            # could never be matched by the registration callback.
            return _error(400, "Bad Request Invalid Parameter userId", no_cache=True)
        package_path = self.service.create_push_package(user_id)
        if not package_path.is_file():
            raise PackageReadError(f"ZIPed package {package_path} can not be read", path=package_path)
        headers = dict(NO_CACHE_HEADERS)
        headers["Content-Type"] = "application/zip"
        return PushResponse(status=200, headers=headers, file_path=package_path)

    def devices_registrations(self, request: PushRequest) -> PushResponse:
        # The token is the authenticationToken embedded in website.json.
        user_id = self.service.parse_user_id(request.header("Authorization"))
        if user_id == "":
            logger.warning(
                "Unauthorized registration callback: %s", redact(request.header("Authorization"))
            )
            return _error(401, "Unauthorized")
        route = match_route(request.path)
        if route is None or route.action != "devices":
            return _error(400, "Bad Request")
        if not self._push_id_matches(route.params["push_id"]):
            return _error(403, "Forbidden Invalid parameter websitePushId")
        device_token = route.params["device_token"]
        method = request.method.upper()
        if method == "POST":
            return _outcome(self.backend.add_device(user_id, device_token))
        if method == "DELETE":
            # Unregistering a device that is already gone is not an error.
            if not self.backend.delete_device(user_id, device_token):
                logger.info("No device %s registered for unregistration", device_token)
            return _outcome(True)
        return _error(400, "Bad Request")

    def log(self, request: PushRequest) -> PushResponse:
        if not request.body:
            return _error(400, "Bad Request Missing Content", no_cache=True)
        decoded = request.json()
        if not isinstance(decoded, dict) or "log" not in decoded:
            return _error(400, "Bad Request Missing log", no_cache=True)
        entries = decoded["log"]
        if not isinstance(entries, list):
            entries = [entries]
        return _outcome(self.backend.process_error_log(entries), no_cache=True)

    def push_notification(self, request: PushRequest) -> PushResponse:
        title = str(request.param("title") or "").strip()
        if title == "":
            return _error(400, "Bad Request Missing Title", 'Missing "title"', no_cache=True)
        body = str(request.param("body") or "").strip()
        if body == "":
            return _error(400, "Bad Request Missing Body", 'Missing "body"', no_cache=True)
        user_id = str(request.param("user-id") or "").strip()
        if user_id == "":
            return _error(400, "Bad Request Missing user-id", 'Missing "user-id"', no_cache=True)
        url_arguments = request.param("arguments") or []
        if isinstance(url_arguments, str):
            url_arguments = url_arguments.split(",")
        url_arguments = [str(argument) for argument in url_arguments]
        expected = self.service.get_count_of_expected_arguments()
        if len(url_arguments) != expected:
            return _error(
                400,
                "Bad Request Invalid Number Of Arguments",
                f"Invalid number of arguments, expected {expected} of them, got {url_arguments!r}",
                no_cache=True,
            )
        # Empty button text lets macOS fall back to its default ("View").
        button_text = str(request.param("button-text") or "").strip()
        device_token = self.backend.get_device_token(user_id)
        if not device_token:
            return _error(
                404,
                "Not Found Device by Given User Authentication Token",
                "No device has been found by given user authentication token",
                no_cache=True,
            )
        json_payload = build_payload(title, body, url_arguments, button_text)
        payload_size = len(json_payload.encode("utf-8"))
        if payload_size > self.max_payload_bytes:
            return _error(
                400,
                "Bad Request Payload To Sent Is Too Long",
                f"Final push notification payload to send is longer than allowed "
                f"{self.max_payload_bytes} bytes with length of {payload_size} bytes",
                no_cache=True,
            )
        return _outcome(
            self.backend.send_push_notification(json_payload, device_token.replace(" ", "")),
            no_cache=True,
        )

    def is_push_action(self, path: str) -> bool:
        return match_route(path) is not None

    def process_push_action(self, request: PushRequest) -> PushResponse:
        route = match_route(request.path)
        if route is None:
            raise UnknownActionError(f"Do not know what to do by {request.path}")
        handlers: dict[str, Callable[[PushRequest], PushResponse]] = {
            "pushPackages": self.push_packages,
            "devices": self.devices_registrations,
            "log": self.log,
        }
        return handlers[route.action](request)


def build_payload(title: str, body: str, url_arguments: list[str], button_text: str = "") -> str:
    alert: dict[str, str] = {"title": title, "body": body}
    if button_text:
        alert["action"] = button_text
    payload = {"aps": {"alert": alert, "url-args": url_arguments}}
    try:
        encoded = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
        encoded.encode("utf-8")
        return encoded
    except (TypeError, ValueError) as exc:
        raise PayloadEncodingError(f"Can not encode to JSON a payload {payload!r}: {exc}") from exc
