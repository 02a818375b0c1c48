"""
Ordered composition of the crawler resources.

The composition waits for the stream ARN, builds the shared execution
identity (waiting once more for the encryption key), then declares one unit
per crawler and one schedule per unit, in the declared crawler order:

    WAITING_FOR_STREAM -> IDENTITY_BUILDING -> UNITS_BUILDING
        -> SCHEDULES_BUILDING -> COMPLETE

Configuration is checked before anything is awaited, so a bad tier,
duplicate crawler name or malformed schedule fails before any resource is
declared. Any later error halts the machine in the state where it happened;
resources already declared are left to the backend.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from crawler_lambdas.backend import ResourceBackend
from crawler_lambdas.compute import (
    ComputeUnit,
    ComputeUnitFactory,
    StreamMapping,
)
from crawler_lambdas.config import (
    CrawlerDescriptor,
    CrawlerSettings,
    validate_schedule_expression,
)
from crawler_lambdas.errors import (
    CompositionConfigError,
    CompositionIncompleteError,
    CrawlerLambdasError,
    ResolutionError,
)
from crawler_lambdas.identity import ExecutionIdentity, IdentityBuilder
from crawler_lambdas.log import get_composition_logger
from crawler_lambdas.resolved import ResolvedValue
from crawler_lambdas.schedule import ScheduleBinder, ScheduleBinding


class CompositionState(str, Enum):
    WAITING_FOR_STREAM = "WaitingForStream"
    IDENTITY_BUILDING = "IdentityBuilding"
    UNITS_BUILDING = "UnitsBuilding"
    SCHEDULES_BUILDING = "SchedulesBuilding"
    COMPLETE = "Complete"


_NEXT_STATE = {
    CompositionState.WAITING_FOR_STREAM: CompositionState.IDENTITY_BUILDING,
    CompositionState.IDENTITY_BUILDING: CompositionState.UNITS_BUILDING,
    CompositionState.UNITS_BUILDING: CompositionState.SCHEDULES_BUILDING,
    CompositionState.SCHEDULES_BUILDING: CompositionState.COMPLETE,
}


@dataclass(frozen=True)
class DeclaredComposition:
    identity: ExecutionIdentity
    units: Tuple[ComputeUnit, ...]
    mappings: Tuple[StreamMapping, ...]
    schedules: Tuple[ScheduleBinding, ...]


class CompositionRoot:
    """
    Drives one composition against a resource backend.

    Args:
        backend: Where resources are declared
        settings: Tier, naming and function configuration
        stream_arn: Handle for the change stream ARN
        encryption_key_arn: Handle for the KMS key ARN
        crawlers: Crawlers to deploy; defaults to ``settings.crawlers``.
            Plain strings are taken as crawler names.

    Raises:
        CompositionConfigError: On unknown tier, duplicate crawler names or
            malformed schedule expressions
    """

    def __init__(
        self,
        backend: ResourceBackend,
        settings: CrawlerSettings,
        stream_arn: ResolvedValue,
        encryption_key_arn: ResolvedValue,
        crawlers: Optional[Sequence[Union[str, CrawlerDescriptor]]] = None,
    ):
        self.backend = backend
        self.settings = settings
        self.stream_arn = stream_arn
        self.encryption_key_arn = encryption_key_arn
        self.crawlers = self._check_configuration(
            settings.crawlers if crawlers is None else crawlers
        )

        self.state = CompositionState.WAITING_FOR_STREAM
        self.failure: Optional[CrawlerLambdasError] = None
        self.identity: Optional[ExecutionIdentity] = None
        self.units: List[ComputeUnit] = []
        self.schedules: List[ScheduleBinding] = []
        self.done: ResolvedValue = ResolvedValue("composition")
        self.log = get_composition_logger(__name__)
        self._declared = False

    def _check_configuration(
        self, crawlers: Sequence[Union[str, CrawlerDescriptor]]
    ) -> List[CrawlerDescriptor]:
        self.settings.memory_for_tier()
        descriptors = [
            CrawlerDescriptor(name=c) if isinstance(c, str) else c
            for c in crawlers
        ]
        seen = set()
        for descriptor in descriptors:
            if descriptor.name in seen:
                raise CompositionConfigError(
                    f"duplicate crawler name {descriptor.name!r}; "
                    "names must be unique"
                )
            seen.add(descriptor.name)
            validate_schedule_expression(self._schedule_for(descriptor))
        return descriptors

    def _schedule_for(self, descriptor: CrawlerDescriptor) -> str:
        return (
            descriptor.schedule_expression
            or self.settings.schedule_expression
        )

    @property
    def is_complete(self) -> bool:
        return self.state is CompositionState.COMPLETE

    @property
    def is_failed(self) -> bool:
        return self.failure is not None

    def declare(self) -> ResolvedValue:
        """
        Subscribe to the stream handle and run the composition when it
        resolves.

        Returns:
            Handle resolving to the DeclaredComposition, or failing with the
            error that halted the composition
        """
        if self._declared:
            raise CompositionConfigError("composition already declared")
        self._declared = True

        # Registered first so upstream failures are classified before the
        # derived handles report them.
        self.stream_arn.on_failed(
            lambda error: self._halt(
                ResolutionError(f"stream ARN failed to resolve: {error}"),
                cause=error,
            )
        )
        self.encryption_key_arn.on_failed(
            lambda error: self._halt(
                ResolutionError(
                    f"encryption key ARN failed to resolve: {error}"
                ),
                cause=error,
            )
        )

        self.log.info(
            "Waiting for stream ARN",
            state=self.state.value,
            crawlers=[d.name for d in self.crawlers],
        )
        self.stream_arn.on_resolved(self._on_stream).on_failed(self._halt)
        return self.done

    def outcome(self) -> DeclaredComposition:
        """
        Raises:
            The error that halted the composition, or
            CompositionIncompleteError while it is still waiting
        """
        if self.failure is not None:
            raise self.failure
        if not self.is_complete:
            raise CompositionIncompleteError(
                f"composition is still in state {self.state.value}"
            )
        return self.done.value

    def _advance(self, state: CompositionState) -> None:
        if _NEXT_STATE.get(self.state) is not state:
            raise CrawlerLambdasError(
                f"illegal transition {self.state.value} -> {state.value}"
            )
        self.log.info(
            "Composition state changed",
            previous=self.state.value,
            state=state.value,
        )
        self.state = state

    def _on_stream(self, stream_arn: str) -> Optional[ResolvedValue]:
        # Halted before the stream arrived, e.g. by a failed key.
        if self.failure is not None:
            return None
        self._advance(CompositionState.IDENTITY_BUILDING)
        if self.encryption_key_arn.is_pending:
            self.log.info(
                "Waiting for encryption key ARN", state=self.state.value
            )
        identity = IdentityBuilder(self.backend, self.settings).build(
            stream_arn, self.encryption_key_arn
        )
        return identity.on_resolved(
            lambda built: self._on_identity(built, stream_arn)
        )

    def _on_identity(
        self, identity: ExecutionIdentity, stream_arn: str
    ) -> DeclaredComposition:
        self.identity = identity

        self._advance(CompositionState.UNITS_BUILDING)
        factory = ComputeUnitFactory(
            self.backend, self.settings, identity, stream_arn
        )
        with self.log.step_timer(self.state.value, count=len(self.crawlers)):
            for descriptor in self.crawlers:
                self.units.append(factory.create(descriptor))

        self._advance(CompositionState.SCHEDULES_BUILDING)
        binder = ScheduleBinder(self.backend, tags=self.settings.tags)
        with self.log.step_timer(self.state.value, count=len(self.units)):
            for descriptor, unit in zip(self.crawlers, self.units):
                self.schedules.append(
                    binder.bind(unit, self._schedule_for(descriptor))
                )

        self._advance(CompositionState.COMPLETE)
        declared = DeclaredComposition(
            identity=identity,
            units=tuple(self.units),
            mappings=tuple(m for unit in self.units for m in unit.mappings),
            schedules=tuple(self.schedules),
        )
        self.done.resolve(declared)
        return declared

    def _halt(
        self, error: BaseException, cause: Optional[BaseException] = None
    ) -> None:
        if self.failure is not None:
            return
        if cause is not None:
            error.__cause__ = cause
        if not isinstance(error, CrawlerLambdasError):
            wrapped = ResolutionError(
                f"composition halted in {self.state.value}: {error}"
            )
            wrapped.__cause__ = error
            error = wrapped
        self.failure = error
        self.log.error(
            "Composition halted",
            state=self.state.value,
            error=str(error),
            error_type=type(error).__name__,
        )
        if self.done.is_pending:
            self.done.fail(error)
