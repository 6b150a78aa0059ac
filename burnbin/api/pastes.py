from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Optional

from flask import Blueprint, current_app, request, url_for
from pydantic import ValidationError

from burnbin.api.schemas import (
    HealthResponse,
    PasteCreatedResponse,
    PasteCreateRequest,
    PasteViewResponse,
    first_error_message,
)
from burnbin.db import SessionLocal
from burnbin.observability import get_correlation_id
from burnbin.services.paste_service import (
    InvalidPasteParameters,
    PasteNotFoundError,
    PasteService,
    PasteStorageError,
)

logger = logging.getLogger(__name__)

TEST_NOW_HEADER = "X-Test-Now-Ms"
INTERNAL_ERROR = "Internal server error"
NOT_FOUND = "Paste not found"

api_bp = Blueprint("api", __name__, url_prefix="/api")


def request_now_ms() -> Optional[int]:
    """
    Injected current time for this request, if any.

    Only honoured when the app runs with ``TEST_MODE``; ``None`` tells the
    service layer to read the wall clock.
    """
    if not current_app.config.get("TEST_MODE", False):
        return None

    raw = request.headers.get(TEST_NOW_HEADER)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning(
            "Ignoring unparsable test clock header",
            extra={
                "event": "test_now_header_invalid",
                "correlation_id": get_correlation_id(),
            },
        )
        return None


def build_paste_service() -> PasteService:
    return PasteService(
        session_factory=SessionLocal,
        strict_view_limit=current_app.config.get("STRICT_VIEW_LIMIT", False),
    )


def paste_url(paste_id: str) -> str:
    base = current_app.config.get("PUBLIC_BASE_URL")
    if base:
        return f"{base.rstrip('/')}/p/{paste_id}"
    return url_for("pages.view_paste_page", paste_id=paste_id, _external=True)


@api_bp.route("/healthz", methods=["GET"])
def health() -> tuple[dict, int]:
    """Simple health check endpoint."""

    body = HealthResponse().model_dump()
    return body, HTTPStatus.OK


@api_bp.route("/pastes", methods=["POST"])
def create_paste() -> tuple[dict, int]:
    """
    Create a new paste.

    Validation is handled by Pydantic; business rules by the service layer.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    try:
        payload = PasteCreateRequest.model_validate(data)
    except ValidationError as exc:
        return {"error": first_error_message(exc)}, HTTPStatus.BAD_REQUEST

    paste_service = build_paste_service()
    try:
        dto = paste_service.create_paste(
            content=payload.content,
            ttl_seconds=payload.ttl_seconds,
            max_views=payload.max_views,
            now_ms=request_now_ms(),
        )
    except InvalidPasteParameters as exc:
        return {"error": str(exc)}, HTTPStatus.BAD_REQUEST
    except PasteStorageError:
        return {"error": INTERNAL_ERROR}, HTTPStatus.INTERNAL_SERVER_ERROR

    body = PasteCreatedResponse(id=dto["id"], url=paste_url(dto["id"]))
    return body.model_dump(), HTTPStatus.CREATED


@api_bp.route("/pastes/<paste_id>", methods=["GET"])
def view_paste(paste_id: str) -> tuple[dict, int]:
    paste_service = build_paste_service()
    try:
        dto = paste_service.retrieve_paste_for_view(
            paste_id,
            now_ms=request_now_ms(),
        )
    except PasteNotFoundError:
        return {"error": NOT_FOUND}, HTTPStatus.NOT_FOUND
    except PasteStorageError:
        return {"error": INTERNAL_ERROR}, HTTPStatus.INTERNAL_SERVER_ERROR

    return PasteViewResponse(**dto).model_dump(), HTTPStatus.OK
