from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, NoReturn, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from burnbin.clock import resolve_now_ms
from burnbin.domain.lifecycle import (
    DenialReason,
    compute_expires_at,
    decide_access,
    format_expires_at,
    remaining_views,
)
from burnbin.observability import get_correlation_id
from burnbin.repositories.paste_repository import PasteRepository


logger = logging.getLogger(__name__)


CONTENT_REQUIRED = "content required"
TTL_SECONDS_INVALID = "ttl_seconds must be integer >= 1"
MAX_VIEWS_INVALID = "max_views must be integer >= 1"

# Upper bound of the INTEGER max_views column.
MAX_VIEWS_LIMIT = 2_147_483_647


class PasteError(Exception):
    """Base class for paste-related errors."""


class InvalidPasteParameters(PasteError):
    """Raised when creating a paste with invalid parameters."""


class PasteNotFoundError(PasteError):
    """
    Raised when a paste cannot be served.

    Unknown ids, expired pastes and view-exhausted pastes all end up here
    so callers cannot tell them apart.
    """


class PasteStorageError(PasteError):
    """Raised when the backing store fails to read or write."""


def as_positive_int(value: Any) -> Optional[int]:
    """
    Return ``value`` as an ``int`` if it is a whole number >= 1, else ``None``.

    Integral floats such as ``5.0`` count as whole numbers; booleans and
    strings do not.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and value >= 1:
        return value
    return None


@dataclass
class PasteService:
    """
    Application service coordinating paste-related use cases.

    Owns session lifecycle: creates a session per use case, commits on success,
    rolls back on exception, and closes the session in a finally block.
    Returns plain dict DTOs; no ORM entities escape this layer.
    """

    session_factory: Callable[[], Session]
    strict_view_limit: bool = False

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------
    def create_paste(
        self,
        *,
        content: str,
        ttl_seconds: Optional[int] = None,
        max_views: Optional[int] = None,
        now_ms: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Create a new paste enforcing business rules:

        - ``content`` must be a non-blank string
        - ``ttl_seconds`` (if provided) must be an integer >= 1 whose expiry
          instant does not pass ``MAX_EXPIRES_AT_MS``
        - ``max_views`` (if provided) must be an integer >= 1 that fits
          ``MAX_VIEWS_LIMIT``

        The expiry instant is ``now + ttl_seconds`` where ``now`` is
        ``now_ms`` when given, otherwise the wall clock.
        """
        if not isinstance(content, str) or content.strip() == "":
            self._reject(CONTENT_REQUIRED)

        if ttl_seconds is not None:
            ttl_seconds = as_positive_int(ttl_seconds)
            if ttl_seconds is None:
                self._reject(TTL_SECONDS_INVALID)

        if max_views is not None:
            max_views = as_positive_int(max_views)
            if max_views is None or max_views > MAX_VIEWS_LIMIT:
                self._reject(MAX_VIEWS_INVALID)

        try:
            expires_at = compute_expires_at(resolve_now_ms(now_ms), ttl_seconds)
        except ValueError:
            self._reject(TTL_SECONDS_INVALID)

        session = self.session_factory()
        try:
            paste_repo = PasteRepository(session=session)
            paste = paste_repo.create_paste(
                content=content,
                expires_at=expires_at,
                max_views=max_views,
            )
            paste_id = paste.id
            session.commit()
            logger.info(
                "Paste created",
                extra={
                    "event": "paste_created",
                    "paste_id": paste_id,
                    "correlation_id": get_correlation_id(),
                },
            )
            return {"id": paste_id}
        except SQLAlchemyError as exc:
            session.rollback()
            self._log_storage_error(exc, operation="create")
            raise PasteStorageError("Failed to store paste.") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # -------------------------------------------------------------------------
    # Retrieval / viewing
    # -------------------------------------------------------------------------
    def retrieve_paste_for_view(
        self,
        paste_id: str,
        *,
        now_ms: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Retrieve a paste for viewing, enforcing view and expiry rules.

        Rules:
        - unknown id → PasteNotFoundError
        - expires_at < now → PasteNotFoundError (reason logged as EXPIRED)
        - views >= max_views → PasteNotFoundError (reason VIEW_LIMIT_EXCEEDED)
        - otherwise increment the view count once and return the content,
          the remaining views and the ISO expiry instant

        By default the gate is check-then-act: two concurrent requests that
        both pass the gate are both served. With ``strict_view_limit`` the
        increment itself refuses to exceed ``max_views``.
        """
        now = resolve_now_ms(now_ms)

        session = self.session_factory()
        try:
            paste_repo = PasteRepository(session=session)

            logger.info(
                "Paste access attempt",
                extra={
                    "event": "paste_access_attempt",
                    "paste_id": paste_id,
                    "correlation_id": get_correlation_id(),
                },
            )

            paste = paste_repo.get_paste_by_id(paste_id)
            if paste is None:
                self._log_denied(paste_id, reason=None)
                raise PasteNotFoundError("Paste not found")

            decision = decide_access(paste, now)
            if not decision.granted:
                self._log_denied(paste_id, reason=decision.reason)
                raise PasteNotFoundError("Paste not found")

            # Built before the increment so nothing can fail after a view is counted.
            dto = {
                "content": paste.content,
                "remaining_views": remaining_views(paste.max_views, paste.views),
                "expires_at": format_expires_at(paste.expires_at),
            }

            updated = paste_repo.increment_views(
                paste_id,
                enforce_limit=self.strict_view_limit,
            )
            if not updated:
                if self.strict_view_limit:
                    session.rollback()
                    self._log_denied(paste_id, reason=DenialReason.VIEW_LIMIT_EXCEEDED)
                    raise PasteNotFoundError("Paste not found")
                logger.warning(
                    "View increment matched no paste",
                    extra={
                        "event": "paste_increment_missed",
                        "paste_id": paste_id,
                        "correlation_id": get_correlation_id(),
                    },
                )

            session.commit()
            logger.info(
                "Paste access successful",
                extra={
                    "event": "paste_access_success",
                    "paste_id": paste_id,
                    "correlation_id": get_correlation_id(),
                },
            )
            return dto
        except SQLAlchemyError as exc:
            session.rollback()
            self._log_storage_error(exc, operation="retrieve", paste_id=paste_id)
            raise PasteStorageError("Failed to read paste.") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # -------------------------------------------------------------------------
    # Logging helpers
    # -------------------------------------------------------------------------
    @staticmethod
    def _reject(message: str) -> NoReturn:
        logger.warning(
            "Invalid parameters when creating paste",
            extra={
                "event": "paste_create_invalid_parameters",
                "error_type": message,
                "correlation_id": get_correlation_id(),
            },
        )
        raise InvalidPasteParameters(message)

    @staticmethod
    def _log_denied(paste_id: str, *, reason: Optional[DenialReason]) -> None:
        logger.info(
            "Paste access denied",
            extra={
                "event": "paste_access_denied",
                "paste_id": paste_id,
                "denial_reason": reason.value if reason else "NOT_FOUND",
                "correlation_id": get_correlation_id(),
            },
        )

    @staticmethod
    def _log_storage_error(
        exc: SQLAlchemyError,
        *,
        operation: str,
        paste_id: Optional[str] = None,
    ) -> None:
        logger.error(
            "Storage failure during paste %s",
            operation,
            exc_info=exc,
            extra={
                "event": "paste_storage_error",
                "paste_id": paste_id,
                "error_type": type(exc).__name__,
                "correlation_id": get_correlation_id(),
            },
        )
