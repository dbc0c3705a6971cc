"""
Positional parameter allocation.

A `ParamBinder` hands out `$k` tokens and records the bound value in the same
step, so the placeholder numbering of a statement and its argument list can
never drift apart.
"""
from collections.abc import Iterable, Sequence
from typing import Any

from pgadapter.sql import shift_placeholders

__all__ = ['ParamBinder']


class ParamBinder:
    """Allocate `$1 … $N` placeholders in lockstep with an argument list.

    Usage:
        binder = ParamBinder()
        sql = f'UPDATE t SET name = {binder.bind("x")}'
        where = binder.absorb(['uid = $1'], [42])   # -> ['uid = $2']
        binder.args                                 # -> ('x', 42)
    """

    __slots__ = ('_args',)

    def __init__(self, args: Iterable[Any] | None = None) -> None:
        self._args: list[Any] = list(args or ())

    def __len__(self) -> int:
        return len(self._args)

    def __repr__(self) -> str:
        return f'ParamBinder(count={len(self._args)})'

    @property
    def count(self) -> int:
        """Number of parameters bound so far."""
        return len(self._args)

    @property
    def args(self) -> tuple[Any, ...]:
        """Bound values in placeholder order."""
        return tuple(self._args)

    def bind(self, value: Any) -> str:
        """Bind one value and return its placeholder token."""
        self._args.append(value)
        return f'${len(self._args)}'

    def bind_many(self, values: Iterable[Any]) -> list[str]:
        """Bind several values, returning their tokens in order."""
        return [self.bind(value) for value in values]

    def absorb(self, fragments: Sequence[str] | str, args: Sequence[Any] = ()) -> list[str]:
        """Take over fragments numbered from `$1` against their own `args`.

        The fragments are shifted past the parameters already bound and
        their arguments appended, keeping both sides aligned.
        """
        if isinstance(fragments, str):
            fragments = [fragments] if fragments else []
        offset = len(self._args)
        shifted = [shift_placeholders(fragment, offset) for fragment in fragments]
        self._args.extend(args)
        return shifted
