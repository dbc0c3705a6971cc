"""
Ordered pre/post hooks around adapter writes.

Domain behavior (address cascades, audit columns, cache invalidation)
registers here instead of overriding adapter methods.
"""
import inspect
import logging
from collections.abc import Callable
from typing import Any

from pgadapter.exceptions import ConfigurationError
from pgadapter.types import QueryOptions

logger = logging.getLogger(__name__)

__all__ = ['HookRegistry', 'EVENTS', 'BEFORE_EVENTS', 'AFTER_EVENTS']

BEFORE_EVENTS = ('before_insert', 'before_update')
AFTER_EVENTS = ('after_insert', 'after_update', 'after_delete')
EVENTS = BEFORE_EVENTS + AFTER_EVENTS


class HookRegistry:
    """Hook lists per event, run sequentially in registration order.

    Before-hooks are called as `hook(adapter, model, options)` and may
    return a replacement QueryOptions. After-hooks are called as
    `hook(adapter, result)`. Hooks may be plain functions or coroutines.

    Usage:
        hooks = HookRegistry()

        @hooks.on('before_insert')
        async def stamp_owner(adapter, model, options):
            model.created_by = model.created_by or 'system'
    """

    def __init__(self) -> None:
        self._hooks: dict[str, list[Callable]] = {event: [] for event in EVENTS}

    def __len__(self) -> int:
        return sum(len(hooks) for hooks in self._hooks.values())

    def _check(self, event: str) -> None:
        if event not in self._hooks:
            raise ConfigurationError(f'Unknown hook event: {event}. Expected one of {list(EVENTS)}')

    def register(self, event: str, hook: Callable) -> Callable:
        self._check(event)
        if not callable(hook):
            raise ConfigurationError(f'Hook for {event} is not callable: {hook!r}')
        self._hooks[event].append(hook)
        return hook

    def on(self, event: str) -> Callable[[Callable], Callable]:
        """Decorator form of `register`."""
        self._check(event)

        def decorator(hook: Callable) -> Callable:
            return self.register(event, hook)
        return decorator

    def hooks(self, event: str) -> tuple[Callable, ...]:
        self._check(event)
        return tuple(self._hooks[event])

    async def run_before(self, event: str, adapter: Any, model: Any,
                         options: QueryOptions) -> QueryOptions:
        """Run before-hooks, threading any replacement options through."""
        if event not in BEFORE_EVENTS:
            raise ConfigurationError(f'{event} is not a before-event')
        for hook in self._hooks[event]:
            result = hook(adapter, model, options)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, QueryOptions):
                options = result
            elif result is not None:
                raise ConfigurationError(
                    f'{event} hook {getattr(hook, "__name__", hook)} returned '
                    f'{type(result).__name__}, expected QueryOptions or None')
        return options

    async def run_after(self, event: str, adapter: Any, result: Any) -> None:
        if event not in AFTER_EVENTS:
            raise ConfigurationError(f'{event} is not an after-event')
        for hook in self._hooks[event]:
            outcome = hook(adapter, result)
            if inspect.isawaitable(outcome):
                await outcome
        if self._hooks[event]:
            logger.debug(f'Ran {len(self._hooks[event])} {event} hook(s)')
