"""Transaction boundary with explicit post-commit hooks."""

from __future__ import annotations

import logging
from collections.abc import Callable
from types import TracebackType

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

AfterCommitHook = Callable[[], object]


class UnitOfWork:
    """Commit-or-rollback scope over a session.

    Hooks registered with :meth:`after_commit` run in registration order,
    only after the commit succeeded. A failing hook is logged and the
    remaining hooks still run; the committed work is never undone.

    Usage::

        with UnitOfWork(db) as uow:
            db.add(row)
            uow.after_commit(lambda: notify(row))
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self._hooks: list[tuple[str, AfterCommitHook]] = []
        self.failed_hooks: list[str] = []

    def after_commit(self, hook: AfterCommitHook, name: str | None = None) -> None:
        """Schedule ``hook`` to run once the transaction has committed."""
        self._hooks.append((name or getattr(hook, "__name__", "hook"), hook))

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self.session.rollback()
            self._hooks.clear()
            return

        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            self._hooks.clear()
            raise

        hooks, self._hooks = self._hooks, []
        for name, hook in hooks:
            try:
                hook()
            except Exception:
                logger.exception("After-commit hook %s failed", name)
                self.session.rollback()
                self.failed_hooks.append(name)
