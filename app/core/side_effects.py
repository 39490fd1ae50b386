"""Best-effort side effects executed after a primary write has been committed."""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Tuple

from app.core.logging import logger


@dataclass
class SideEffectFailure:
    """A side effect that raised while running after commit."""

    name: str
    error: str


@dataclass
class PostCommitHooks:
    """
    Ordered list of coroutines to run once the primary write succeeded.

    Hooks never propagate errors: a failing hook is logged, recorded in
    ``failures`` and the remaining hooks still run.
    """

    _hooks: List[Tuple[str, Callable[..., Awaitable[Any]], tuple, dict]] = field(default_factory=list)
    failures: List[SideEffectFailure] = field(default_factory=list)

    def add(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> None:
        """Queue ``func(*args, **kwargs)`` to run after commit."""
        self._hooks.append((getattr(func, "__qualname__", repr(func)), func, args, kwargs))

    def __len__(self) -> int:
        return len(self._hooks)

    async def run(self) -> List[SideEffectFailure]:
        """Run and clear all queued hooks, returning the failures of this run."""
        hooks, self._hooks = self._hooks, []
        run_failures: List[SideEffectFailure] = []

        for name, func, args, kwargs in hooks:
            try:
                await func(*args, **kwargs)
            except Exception as e:
                logger.error(f"❌ Post-commit side effect {name} failed: {e}")
                run_failures.append(SideEffectFailure(name=name, error=str(e)))

        self.failures.extend(run_failures)
        return run_failures
