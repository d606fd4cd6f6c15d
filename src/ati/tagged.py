"""Tagged values: scalars that carry a ledger tag.

Every arithmetic operation or comparison between tagged values is an
interaction and is recorded in the owning Context's ledger. The side effect
is part of the contract, so each operator is also available as an ordinary
method (`a.add(b)`, `a.lt(b)`) for call sites that want it visible.

Instances are immutable: operators return new TaggedValues, and the tag of a
value never changes.
"""

from __future__ import annotations

import numbers
import operator
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from ati.errors import ContextMismatchError

if TYPE_CHECKING:
    from ati.context import Context

T = TypeVar("T")


def is_scalar(value: object) -> bool:
    """Values the engine tags. Everything else is an opaque container."""
    return isinstance(value, numbers.Number)


class TaggedValue(Generic[T]):
    """A scalar paired with exactly one ledger tag. Create via Context.track()."""

    __slots__ = ("_value", "_tag", "_context")

    def __init__(self, value: T, tag: int, context: Context) -> None:
        self._value = value
        self._tag = tag
        self._context = context

    @property
    def value(self) -> T:
        return self._value

    @property
    def tag(self) -> int:
        return self._tag

    @property
    def context(self) -> Context:
        return self._context

    def unwrap(self) -> T:
        """Strip the tag, e.g. before handing the value to untracked code."""
        return self._value

    # --- Interactions ---

    def _coerce(self, other: object) -> TaggedValue:
        """Tag a bare scalar operand, the way instrumentation wraps literals."""
        if isinstance(other, TaggedValue):
            if other._context is not self._context:
                raise ContextMismatchError(
                    f"cannot combine tags from different contexts: {self!r}, {other!r}"
                )
            return other
        if is_scalar(other):
            return self._context.track(other)
        return NotImplemented

    def _arith(self, other: object, op: Callable, *, reflected: bool = False):
        rhs = self._coerce(other)
        if rhs is NotImplemented:
            return NotImplemented
        left, right = (rhs, self) if reflected else (self, rhs)
        result = self._context.track(op(left._value, right._value))
        # Operands interacted; the result shares their provenance.
        self._context.union_tags(left, right)
        self._context.union_tags(result, left)
        return result

    def _compare(self, other: object, op: Callable) -> bool:
        rhs = self._coerce(other)
        if rhs is NotImplemented:
            return NotImplemented
        self._context.union_tags(self, rhs)
        return op(self._value, rhs._value)

    def add(self, other) -> TaggedValue:
        return self._arith(other, operator.add)

    def sub(self, other) -> TaggedValue:
        return self._arith(other, operator.sub)

    def mul(self, other) -> TaggedValue:
        return self._arith(other, operator.mul)

    def truediv(self, other) -> TaggedValue:
        return self._arith(other, operator.truediv)

    def floordiv(self, other) -> TaggedValue:
        return self._arith(other, operator.floordiv)

    def eq(self, other) -> bool:
        return self._compare(other, operator.eq)

    def ne(self, other) -> bool:
        return self._compare(other, operator.ne)

    def lt(self, other) -> bool:
        return self._compare(other, operator.lt)

    def le(self, other) -> bool:
        return self._compare(other, operator.le)

    def gt(self, other) -> bool:
        return self._compare(other, operator.gt)

    def ge(self, other) -> bool:
        return self._compare(other, operator.ge)

    __add__ = add
    __sub__ = sub
    __mul__ = mul
    __truediv__ = truediv
    __floordiv__ = floordiv
    __eq__ = eq
    __ne__ = ne
    __lt__ = lt
    __le__ = le
    __gt__ = gt
    __ge__ = ge

    def __radd__(self, other):
        return self._arith(other, operator.add, reflected=True)

    def __rsub__(self, other):
        return self._arith(other, operator.sub, reflected=True)

    def __rmul__(self, other):
        return self._arith(other, operator.mul, reflected=True)

    def __rtruediv__(self, other):
        return self._arith(other, operator.truediv, reflected=True)

    def __rfloordiv__(self, other):
        return self._arith(other, operator.floordiv, reflected=True)

    # Equality records an interaction, so it can't back a hash.
    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"TaggedValue({self._value!r}, tag={self._tag})"
