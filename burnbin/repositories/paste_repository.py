from __future__ import annotations

from typing import Optional

from sqlalchemy import Select, Update, or_, select, update
from sqlalchemy.orm import Session

from burnbin.domain.models import Paste


class PasteRepository:
    """
    Repository for Paste aggregates.

    All database interaction for Paste should go through this class.
    Records are never physically deleted; expiry and view exhaustion are
    decided by ``burnbin.domain.lifecycle`` at read time.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def create_paste(
        self,
        *,
        content: str,
        expires_at: Optional[int] = None,
        max_views: Optional[int] = None,
    ) -> Paste:
        """
        Create and persist a new Paste with ``views = 0``.

        Note: Paste content is set only at creation time and is not exposed
        for updates via this repository.
        """

        paste = Paste(
            content=content,
            expires_at=expires_at,
            max_views=max_views,
            views=0,
        )
        self._session.add(paste)
        # Flush so that generated primary key and defaults are populated.
        self._session.flush()
        return paste

    def get_paste_by_id(self, paste_id: str) -> Optional[Paste]:
        """Return a Paste by its id, or ``None`` if not found."""

        stmt: Select[tuple[Paste]] = select(Paste).where(Paste.id == paste_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def increment_views(self, paste_id: str, *, enforce_limit: bool = False) -> bool:
        """
        Atomically increment the view count for a Paste.

        The increment is a single ``UPDATE`` evaluated by the database, so
        concurrent callers never lose updates. With ``enforce_limit`` the
        statement only matches while ``views < max_views``.

        Returns ``True`` if a row was updated. A missing paste is a no-op.
        """

        stmt: Update = (
            update(Paste)
            .where(Paste.id == paste_id)
            .values(views=Paste.views + 1)
            .execution_options(synchronize_session=False)
        )
        if enforce_limit:
            stmt = stmt.where(
                or_(Paste.max_views.is_(None), Paste.views < Paste.max_views)
            )

        result = self._session.execute(stmt)
        return result.rowcount > 0
