"""FastAPI service."""

from __future__ import annotations

from contextlib import suppress
import hmac
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse, Response
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from pushpackage.config import Settings
from pushpackage.controller import PushNotificationsController, PushRequest, PushResponse
from pushpackage.failures import PushPackageError, UnknownActionError
from pushpackage.service import PushPackageService
from pushpackage.storage import PushNotificationBackend, SqlitePushBackend
from pushpackage.util.logging import get_logger

logger = get_logger(__name__)

OPERATOR_TOKEN_HEADER = "X-Operator-Token"


def build_controller(
    settings: Settings, backend: PushNotificationBackend | None = None
) -> PushNotificationsController:
    service = PushPackageService.from_settings(settings)
    return PushNotificationsController(
        service,
        backend or SqlitePushBackend(Path(settings.device_db_path)),
        max_payload_bytes=settings.max_payload_bytes,
    )


async def to_push_request(request: Request) -> PushRequest:
    body = await request.body()
    params: dict[str, Any] = {}
    for key in request.query_params.keys():
        values = request.query_params.getlist(key)
        params[key] = values if len(values) > 1 else values[0]
    if body and request.headers.get("content-type", "").startswith("application/json"):
        push_request = PushRequest(method=request.method, path=request.url.path, body=body)
        decoded = push_request.json()
        if isinstance(decoded, dict):
            params.update(decoded)
    return PushRequest(
        method=request.method,
        path=request.url.path,
        headers=dict(request.headers),
        body=body,
        params=params,
    )


def _remove_package(path: Path) -> None:
    with suppress(OSError):
        path.unlink()
    logger.debug("Removed served package %s", path)


def to_response(result: PushResponse) -> Response:
    if result.file_path is not None:
        headers = {k: v for k, v in result.headers.items() if k.lower() != "content-type"}
        return FileResponse(
            result.file_path,
            media_type="application/zip",
            headers=headers,
            filename="pushPackage.zip",
            background=BackgroundTask(_remove_package, result.file_path),
        )
    content = result.body or result.reason.encode("utf-8")
    return Response(content=content, status_code=result.status, headers=result.headers)


def create_app(
    settings: Settings | None = None,
    controller: PushNotificationsController | None = None,
) -> FastAPI:
    settings = settings or Settings()
    controller = controller or build_controller(settings)
    app = FastAPI()
    app.state.controller = controller

    @app.exception_handler(PushPackageError)
    async def push_package_failed(request: Request, exc: PushPackageError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": exc.step, **exc.context()})

    @app.exception_handler(UnknownActionError)
    async def unknown_action(request: Request, exc: UnknownActionError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc)})

    if settings.operator_token:
        operator_token = settings.operator_token

        @app.api_route("/push", methods=["GET", "POST"])
        async def push_notification(request: Request) -> Response:
            supplied = request.headers.get(OPERATOR_TOKEN_HEADER, "")
            if not hmac.compare_digest(supplied.encode("utf-8"), operator_token.encode("utf-8")):
                logger.warning("Rejected operator push without a valid %s", OPERATOR_TOKEN_HEADER)
                return Response(content=b"Unauthorized", status_code=401)
            push_request = await to_push_request(request)
            result = await run_in_threadpool(controller.push_notification, push_request)
            return to_response(result)

    @app.api_route("/{path:path}", methods=["POST", "DELETE"])
    async def push_action(request: Request, path: str) -> Response:
        push_request = await to_push_request(request)
        result = await run_in_threadpool(controller.process_push_action, push_request)
        return to_response(result)

    return app
