"""
Resource backends.

The composition never talks to a provider directly. It declares resources
through ``declare(kind, name, properties, parent)`` and expresses links
between resources as ``Reference`` values. ``RecordingBackend`` keeps the
declarations in memory; ``crawler_lambdas.pulumi_backend.PulumiBackend``
turns them into pulumi_aws resources.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Protocol

from crawler_lambdas.errors import ProvisioningError

ROLE = "aws:iam/role:Role"
FUNCTION = "aws:lambda/function:Function"
EVENT_SOURCE_MAPPING = "aws:lambda/eventSourceMapping:EventSourceMapping"
EVENT_RULE = "aws:cloudwatch/eventRule:EventRule"
EVENT_TARGET = "aws:cloudwatch/eventTarget:EventTarget"
PERMISSION = "aws:lambda/permission:Permission"

RESOURCE_KINDS = (
    ROLE,
    FUNCTION,
    EVENT_SOURCE_MAPPING,
    EVENT_RULE,
    EVENT_TARGET,
    PERMISSION,
)


class Reference(NamedTuple):
    """An attribute of another declared resource, e.g. a role's ``arn``."""

    resource: str
    attribute: str


def iter_references(value: Any) -> Iterator[Reference]:
    """Yield every Reference nested in lists, tuples and dicts."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)


class ResourceBackend(Protocol):
    def declare(
        self,
        kind: str,
        name: str,
        properties: Dict[str, Any],
        parent: Optional[str] = None,
    ) -> str:
        """Declare a resource and return its logical name."""
        ...


@dataclass
class DeclaredResource:
    kind: str
    name: str
    properties: Dict[str, Any]
    parent: Optional[str] = None
    children: List[str] = field(default_factory=list)


class RecordingBackend:
    """In-memory backend that records declarations in order.

    Duplicate names, dangling references and unknown parents are refused
    with ProvisioningError, the same way a provider would refuse them.
    ``delete`` follows parent links, so deleting a function also removes
    everything parented to it.
    """

    def __init__(self):
        self.resources: Dict[str, DeclaredResource] = {}

    def declare(
        self,
        kind: str,
        name: str,
        properties: Dict[str, Any],
        parent: Optional[str] = None,
    ) -> str:
        if kind not in RESOURCE_KINDS:
            raise ProvisioningError(f"unsupported resource kind {kind!r}")
        if name in self.resources:
            raise ProvisioningError(
                f"resource {name!r} already exists "
                f"({self.resources[name].kind})"
            )
        if parent is not None and parent not in self.resources:
            raise ProvisioningError(
                f"parent {parent!r} of {name!r} has not been declared"
            )
        for ref in iter_references(properties):
            if ref.resource not in self.resources:
                raise ProvisioningError(
                    f"{name!r} references undeclared resource "
                    f"{ref.resource!r}"
                )
        self.resources[name] = DeclaredResource(
            kind=kind, name=name, properties=dict(properties), parent=parent
        )
        if parent is not None:
            self.resources[parent].children.append(name)
        return name

    def __contains__(self, name: str) -> bool:
        return name in self.resources

    def __len__(self) -> int:
        return len(self.resources)

    def get(self, name: str) -> DeclaredResource:
        return self.resources[name]

    def names(self, kind: Optional[str] = None) -> List[str]:
        return [
            r.name
            for r in self.resources.values()
            if kind is None or r.kind == kind
        ]

    def descendants(self, name: str) -> List[str]:
        found = []
        for child in self.resources[name].children:
            found.append(child)
            found.extend(self.descendants(child))
        return found

    def delete(self, name: str) -> List[str]:
        """Delete ``name`` and everything parented under it.

        Returns:
            Names removed, children before their parents
        """
        if name not in self.resources:
            raise ProvisioningError(f"resource {name!r} does not exist")
        removed = list(reversed(self.descendants(name))) + [name]
        parent = self.resources[name].parent
        if parent is not None:
            self.resources[parent].children.remove(name)
        for resource_name in removed:
            del self.resources[resource_name]
        return removed

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {
            r.name: {"kind": r.kind, "parent": r.parent}
            for r in self.resources.values()
        }
