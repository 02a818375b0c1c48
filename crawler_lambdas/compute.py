"""
Crawler functions and their stream subscriptions.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List

from crawler_lambdas.backend import (
    EVENT_SOURCE_MAPPING,
    FUNCTION,
    Reference,
    ResourceBackend,
)
from crawler_lambdas.config import CrawlerDescriptor, CrawlerSettings
from crawler_lambdas.errors import CompositionConfigError
from crawler_lambdas.identity import ExecutionIdentity

if TYPE_CHECKING:
    from crawler_lambdas.schedule import ScheduleBinding

logger = logging.getLogger(__name__)

MAPPING_SUFFIX = "-dynamodb-stream-mapping"


@dataclass(frozen=True)
class StreamMapping:
    """Subscription of one unit to the change stream, parented to the unit."""

    resource_name: str
    source_stream: str
    unit_name: str
    starting_position: str


@dataclass
class ComputeUnit:
    """One container-image Lambda running a single crawler."""

    name: str
    image_uri: str
    architecture: str
    memory_size: int
    timeout: int
    identity: ExecutionIdentity
    environment: Dict[str, str]
    tags: Dict[str, str]
    mappings: List[StreamMapping] = field(default_factory=list)
    schedules: List["ScheduleBinding"] = field(default_factory=list)

    @property
    def arn(self) -> Reference:
        return Reference(self.name, "arn")

    @property
    def function_name(self) -> Reference:
        return Reference(self.name, "name")


class ComputeUnitFactory:
    """
    Creates crawler functions that share one execution identity.

    Each unit is declared together with exactly one stream mapping reading
    from the latest stream position, so a new crawler reacts to future
    changes only and never replays history.
    """

    def __init__(
        self,
        backend: ResourceBackend,
        settings: CrawlerSettings,
        identity: ExecutionIdentity,
        stream_arn: str,
    ):
        self.backend = backend
        self.settings = settings
        self.identity = identity
        self.stream_arn = stream_arn
        self.units: Dict[str, ComputeUnit] = {}

    def create(self, descriptor: CrawlerDescriptor) -> ComputeUnit:
        """
        Declare the function for ``descriptor`` and its stream mapping.

        Raises:
            CompositionConfigError: If the name was already used or the
                active tier has no memory size
        """
        name = descriptor.name
        if name in self.units:
            raise CompositionConfigError(
                f"duplicate crawler name {name!r}; names must be unique"
            )

        unit = ComputeUnit(
            name=name,
            image_uri=self.settings.image_uri(name),
            architecture=self.settings.architecture,
            memory_size=self._memory_size(descriptor),
            timeout=self.settings.timeout,
            identity=self.identity,
            environment={
                "DYNAMO_TABLE": self.settings.result_table,
                **descriptor.environment,
            },
            tags=dict(self.settings.tags),
        )
        self.backend.declare(
            FUNCTION,
            unit.name,
            {
                "package_type": "Image",
                "image_uri": unit.image_uri,
                "architectures": [unit.architecture],
                "memory_size": unit.memory_size,
                "timeout": unit.timeout,
                "role": self.identity.arn,
                "environment": {"variables": dict(unit.environment)},
                "tags": dict(unit.tags),
            },
        )
        self.units[name] = unit
        unit.mappings.append(self._subscribe(unit))

        logger.info(
            "Declared crawler %s (%d MB, %s)",
            name,
            unit.memory_size,
            unit.architecture,
        )
        return unit

    def _memory_size(self, descriptor: CrawlerDescriptor) -> int:
        # Tier lookup runs even with an override so a bad tier never passes.
        tier_memory = self.settings.memory_for_tier()
        if descriptor.memory_size is not None:
            return descriptor.memory_size
        return tier_memory

    def _subscribe(self, unit: ComputeUnit) -> StreamMapping:
        mapping = StreamMapping(
            resource_name=f"{unit.name}{MAPPING_SUFFIX}",
            source_stream=self.stream_arn,
            unit_name=unit.name,
            starting_position=self.settings.starting_position,
        )
        self.backend.declare(
            EVENT_SOURCE_MAPPING,
            mapping.resource_name,
            {
                "event_source_arn": mapping.source_stream,
                "function_name": unit.arn,
                "starting_position": mapping.starting_position,
            },
            parent=unit.name,
        )
        return mapping
