from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, render_template

from burnbin.api.pastes import (
    INTERNAL_ERROR,
    NOT_FOUND,
    build_paste_service,
    request_now_ms,
)
from burnbin.services.paste_service import PasteNotFoundError, PasteStorageError

pages_bp = Blueprint("pages", __name__)

_PLAIN_TEXT = {"Content-Type": "text/plain; charset=utf-8"}


@pages_bp.route("/p/<paste_id>", methods=["GET"])
def view_paste_page(paste_id: str):
    """
    Render a paste as a minimal HTML page.

    Jinja autoescaping turns ``&``, ``<`` and ``>`` in the content into
    entities. Denials get a plain-text 404 with no reason attached.
    """
    try:
        dto = build_paste_service().retrieve_paste_for_view(
            paste_id,
            now_ms=request_now_ms(),
        )
    except PasteNotFoundError:
        return NOT_FOUND, HTTPStatus.NOT_FOUND, _PLAIN_TEXT
    except PasteStorageError:
        return INTERNAL_ERROR, HTTPStatus.INTERNAL_SERVER_ERROR, _PLAIN_TEXT

    return render_template("paste.html", content=dto["content"]), HTTPStatus.OK
