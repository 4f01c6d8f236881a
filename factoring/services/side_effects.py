"""Best-effort work dispatched after a primary mutation has committed.

Operations schedule audit entries and notifications on a ``SideEffects``
instance instead of running them inline. The router attaches ``run`` as a
background task, so the outcome of the primary operation is already decided
when these run. Each task gets its own session and transaction; a failing task
is logged on the integration stream and recorded in ``failures`` without
affecting the others.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from factoring.core.logging import get_integration_logger

logger = get_integration_logger()


@dataclass(frozen=True)
class SideEffectFailure:
    name: str
    error: str


@dataclass
class _Pending:
    name: str
    func: Callable[..., Any]
    args: tuple[Any, ...]
    kwargs: dict[str, Any]


@dataclass
class SideEffects:
    session_factory: async_sessionmaker[AsyncSession] | Callable[[], AsyncSession]
    completed: list[str] = field(default_factory=list)
    failures: list[SideEffectFailure] = field(default_factory=list)
    _pending: list[_Pending] = field(default_factory=list)

    def schedule(self, name: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """Queue ``func(session, *args, **kwargs)``; sync or async callables are accepted."""
        self._pending.append(_Pending(name=name, func=func, args=args, kwargs=kwargs))

    @property
    def pending(self) -> list[str]:
        return [item.name for item in self._pending]

    def discard(self) -> None:
        self._pending.clear()

    async def run(self) -> None:
        pending, self._pending = self._pending, []
        for item in pending:
            try:
                async with self.session_factory() as session:
                    result = item.func(session, *item.args, **item.kwargs)
                    if inspect.isawaitable(result):
                        await result
                    await session.commit()
            except Exception as exc:
                self.failures.append(SideEffectFailure(name=item.name, error=str(exc)))
                logger.warning("Side effect %s failed: %s", item.name, exc, exc_info=True)
            else:
                self.completed.append(item.name)
