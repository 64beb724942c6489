"""
Before/after hook chain for the endpoint pipeline.

Hooks are matcher-guarded interceptors grouped into two phases. The chain is
an immutable snapshot built once at initialization; it runs the before phase
ahead of the endpoint handler and the after phase once the outcome is known.

Before phase, for each matching hook in registration order:

* returning None continues with the next hook
* returning ``{"context": {...}}`` (or a ContextPatch) merges the patch into
  the context and continues
* returning anything else short-circuits: later before-hooks and the endpoint
  handler are skipped and the value becomes ``ctx.returned``
* raising aborts the phase; the error becomes ``ctx.returned``

After phase, for each hook whose matcher accepts the inbound path and context:
a return value replaces ``ctx.returned`` and an error raised by the matcher or
the handler replaces it too, so later hooks can inspect and rewrap it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Tuple

from .context import ContextPatch, RequestContext


logger = logging.getLogger(__name__)

# Sentinel for "no before-hook produced a result"
NOT_SHORT_CIRCUITED = object()


class HookPhase(Enum):
    """Phase a hook runs in."""
    BEFORE = "before"
    AFTER = "after"


@dataclass(frozen=True)
class Hook:
    """
    A matcher-guarded interceptor.

    Attributes:
        matcher: Predicate ``matcher(path, ctx) -> bool``
        handler: Callable ``handler(ctx)`` returning None, a context patch or a result
    """

    matcher: Callable[[str, RequestContext], bool]
    handler: Callable[[RequestContext], Any]

    def matches(self, path: str, ctx: RequestContext) -> bool:
        return bool(self.matcher(path, ctx))


def match_path(*paths: str) -> Callable[[str, RequestContext], bool]:
    """Build a matcher accepting any of the given endpoint paths."""
    accepted = frozenset(paths)

    def matcher(path: str, ctx: RequestContext) -> bool:
        return path in accepted

    return matcher


def match_all(path: str, ctx: RequestContext) -> bool:
    return True


class HookChain:
    """
    Ordered before and after hooks, frozen at construction.

    The chain never changes after it is built; a new chain is created when
    the registry is rebuilt.
    """

    def __init__(self, before: Iterable[Hook] = (), after: Iterable[Hook] = ()):
        self._before: Tuple[Hook, ...] = tuple(before)
        self._after: Tuple[Hook, ...] = tuple(after)

    @property
    def before(self) -> Tuple[Hook, ...]:
        return self._before

    @property
    def after(self) -> Tuple[Hook, ...]:
        return self._after

    def hooks(self, phase: HookPhase) -> Tuple[Hook, ...]:
        return self._before if phase is HookPhase.BEFORE else self._after

    def run_before(self, ctx: RequestContext) -> Any:
        """
        Run the before phase.

        Returns:
            The short-circuit result, or NOT_SHORT_CIRCUITED when the endpoint
            handler should run. Errors raised by hooks propagate to the caller.
        """
        for index, hook in enumerate(self._before):
            if not hook.matches(ctx.path, ctx):
                continue

            result = hook.handler(ctx)
            if result is None:
                continue

            patch = ContextPatch.from_hook_result(result)
            if patch is not None:
                logger.debug(f"Before hook #{index} patched context fields {sorted(patch.values)} for {ctx.path}")
                ctx.apply_patch(patch)
                continue

            logger.debug(f"Before hook #{index} short-circuited {ctx.path}")
            return result

        return NOT_SHORT_CIRCUITED

    def run_after(self, ctx: RequestContext, inbound: Optional[RequestContext] = None) -> None:
        """
        Run the after phase, updating ``ctx.returned`` in place.

        Args:
            ctx: Live context holding the in-flight result in ``returned``
            inbound: Snapshot taken before any context patch; matchers see this
                path and context instead of the patched one
        """
        inbound = inbound or ctx
        for index, hook in enumerate(self._after):
            try:
                if not hook.matches(inbound.path, inbound):
                    continue
                result = hook.handler(ctx)
            except Exception as e:
                logger.debug(f"After hook #{index} raised {e.__class__.__name__} for {inbound.path}")
                ctx.returned = e
                continue

            if result is not None:
                ctx.returned = result

    def __len__(self) -> int:
        return len(self._before) + len(self._after)

    def __repr__(self) -> str:
        return f"HookChain(before={len(self._before)}, after={len(self._after)})"
