"""
Handles for values produced by an earlier provisioning step.

A ResolvedValue starts pending and is settled exactly once, either with a
value (``resolve``) or with an error (``fail``). Continuations registered with
``on_resolved`` run synchronously on the thread that settles the handle, or
immediately when the handle is already resolved. They never run before the
value exists and never run twice.

Pulumi Outputs are bridged with ``ResolvedValue.from_output``. A task awaits
the Output and settles the handle: a rejected Output fails it, an unknown one
(during previews) leaves it pending. Resources declared from a continuation
are registered with the engine like any other resource.
"""

import asyncio
from typing import Any, Callable, Generic, List, Optional, Tuple, TypeVar

import pulumi

from crawler_lambdas.errors import ResolutionError

T = TypeVar("T")
U = TypeVar("U")

PENDING = "pending"
RESOLVED = "resolved"
FAILED = "failed"


class ResolvedValue(Generic[T]):
    """A value that becomes known later, with single-shot continuations."""

    def __init__(self, label: Optional[str] = None):
        self.label = label or "value"
        self.source: Optional[pulumi.Output] = None
        self._status = PENDING
        self._value: Optional[T] = None
        self._error: Optional[BaseException] = None
        self._callbacks: List[Callable[[T], Any]] = []
        self._errbacks: List[Callable[[BaseException], Any]] = []

    def __repr__(self) -> str:
        return f"ResolvedValue({self.label!r}, {self._status})"

    @classmethod
    def of(cls, value: T, label: Optional[str] = None) -> "ResolvedValue[T]":
        """Wrap a value that is already known."""
        handle = cls(label)
        handle.resolve(value)
        return handle

    @classmethod
    def from_output(
        cls, output: pulumi.Input[T], label: Optional[str] = None
    ) -> "ResolvedValue[T]":
        """Bridge a Pulumi Output (or plain input) into a handle.

        ``source`` is an Output that settles after the handle does, with
        whether the value was known. It raises only when a continuation
        raised.
        """
        handle = cls(label)
        upstream = pulumi.Output.from_input(output)

        async def _settle() -> bool:
            try:
                value = await upstream.future()
                known = await upstream.is_known()
            except Exception as error:
                handle.fail(error)
                return False
            # Unknown during previews; nothing downstream is declared.
            if not known:
                return False
            handle.resolve(value)
            return True

        handle.source = pulumi.Output.from_input(
            asyncio.ensure_future(_settle())
        )
        return handle

    @property
    def status(self) -> str:
        return self._status

    @property
    def is_pending(self) -> bool:
        return self._status == PENDING

    @property
    def is_resolved(self) -> bool:
        return self._status == RESOLVED

    @property
    def is_failed(self) -> bool:
        return self._status == FAILED

    @property
    def value(self) -> T:
        if self._status == FAILED:
            raise ResolutionError(
                f"{self.label} failed to resolve: {self._error}"
            ) from self._error
        if self._status != RESOLVED:
            raise ResolutionError(f"{self.label} has not resolved yet")
        return self._value

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def resolve(self, value: T) -> None:
        """Settle the handle with a value and run pending continuations.

        Every continuation runs even when an earlier one raises. The first
        exception is re-raised afterwards; handles derived from failing
        continuations have been failed by then.
        """
        if self._status != PENDING:
            raise ResolutionError(
                f"{self.label} is already {self._status}; "
                "a handle resolves at most once"
            )
        self._status = RESOLVED
        self._value = value
        callbacks, self._callbacks = self._callbacks, []
        self._errbacks = []
        _run_all(callbacks, value)

    def fail(self, error: BaseException) -> None:
        """Settle the handle with an error; continuations never run."""
        if self._status != PENDING:
            raise ResolutionError(
                f"{self.label} is already {self._status}; cannot fail it"
            )
        self._status = FAILED
        self._error = error
        errbacks, self._errbacks = self._errbacks, []
        self._callbacks = []
        _run_all(errbacks, error)

    def on_resolved(self, callback: Callable[[T], U]) -> "ResolvedValue[U]":
        """Run ``callback(value)`` once the value is known.

        Returns a handle for the callback's result. A callback returning a
        ResolvedValue is flattened, so chained suspensions compose.
        """
        derived: ResolvedValue[U] = ResolvedValue(f"{self.label}.on_resolved")

        def _run(value: T) -> None:
            try:
                result = callback(value)
            except Exception as error:
                derived.fail(error)
                raise
            if isinstance(result, ResolvedValue):
                result._when_resolved(derived.resolve)
                result._when_failed(derived.fail)
            else:
                derived.resolve(result)

        self._when_resolved(_run)
        self._when_failed(derived.fail)
        return derived

    def on_failed(
        self, errback: Callable[[BaseException], Any]
    ) -> "ResolvedValue[T]":
        """Run ``errback(error)`` if the handle fails."""
        self._when_failed(errback)
        return self

    def combine(self, *others: Any) -> "ResolvedValue[Tuple[Any, ...]]":
        """Wait for this handle and ``others`` jointly."""
        return combine(self, *others)

    def _when_resolved(self, callback: Callable[[T], Any]) -> None:
        if self._status == RESOLVED:
            callback(self._value)
        elif self._status == PENDING:
            self._callbacks.append(callback)

    def _when_failed(self, errback: Callable[[BaseException], Any]) -> None:
        if self._status == FAILED:
            errback(self._error)
        elif self._status == PENDING:
            self._errbacks.append(errback)


def _run_all(callbacks: List[Callable[[Any], Any]], argument: Any) -> None:
    first_error: Optional[Exception] = None
    for callback in callbacks:
        try:
            callback(argument)
        except Exception as error:
            if first_error is None:
                first_error = error
    if first_error is not None:
        raise first_error


def combine(*values: Any) -> ResolvedValue[Tuple[Any, ...]]:
    """Resolve with the tuple of all values once every input is known.

    Plain values are accepted and treated as already resolved. The first
    failing input fails the combined handle.
    """
    handles = [
        value if isinstance(value, ResolvedValue) else ResolvedValue.of(value)
        for value in values
    ]
    joined: ResolvedValue[Tuple[Any, ...]] = ResolvedValue(
        "combine(" + ", ".join(handle.label for handle in handles) + ")"
    )
    if not handles:
        joined.resolve(())
        return joined

    def _settle(_: Any) -> None:
        if joined.is_pending and all(h.is_resolved for h in handles):
            joined.resolve(tuple(h.value for h in handles))

    def _abort(error: BaseException) -> None:
        if joined.is_pending:
            joined.fail(error)

    for handle in handles:
        handle._when_resolved(_settle)
        handle._when_failed(_abort)
    return joined
