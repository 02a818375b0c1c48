"""
Backend declaring resources with pulumi_aws.
"""

from typing import Any, Dict, Optional

import pulumi
import pulumi_aws as aws
from pulumi import ResourceOptions

from crawler_lambdas.backend import (
    EVENT_RULE,
    EVENT_SOURCE_MAPPING,
    EVENT_TARGET,
    FUNCTION,
    PERMISSION,
    ROLE,
    Reference,
)
from crawler_lambdas.errors import ProvisioningError

RESOURCE_CLASSES = {
    ROLE: aws.iam.Role,
    FUNCTION: aws.lambda_.Function,
    EVENT_SOURCE_MAPPING: aws.lambda_.EventSourceMapping,
    EVENT_RULE: aws.cloudwatch.EventRule,
    EVENT_TARGET: aws.cloudwatch.EventTarget,
    PERMISSION: aws.lambda_.Permission,
}


class PulumiBackend:
    """
    Creates pulumi_aws resources for declarations.

    Resources declared without a parent are parented to ``parent`` (usually
    the owning ComponentResource); the others to the resource named by their
    parent, which ties their deletion to it.
    """

    def __init__(self, parent: Optional[pulumi.Resource] = None):
        self.parent = parent
        self.resources: Dict[str, pulumi.CustomResource] = {}

    def declare(
        self,
        kind: str,
        name: str,
        properties: Dict[str, Any],
        parent: Optional[str] = None,
    ) -> str:
        resource_class = RESOURCE_CLASSES.get(kind)
        if resource_class is None:
            raise ProvisioningError(f"unsupported resource kind {kind!r}")
        if name in self.resources:
            raise ProvisioningError(f"resource {name!r} already exists")
        if parent is not None and parent not in self.resources:
            raise ProvisioningError(
                f"parent {parent!r} of {name!r} has not been declared"
            )

        inputs = {k: self._resolve(v) for k, v in properties.items()}
        opts = ResourceOptions(
            parent=self.resources[parent] if parent else self.parent
        )
        try:
            resource = resource_class(name, opts=opts, **inputs)
        except Exception as e:
            raise ProvisioningError(
                f"failed to declare {kind} {name!r}: {e}"
            ) from e

        self.resources[name] = resource
        return name

    def _resolve(self, value: Any) -> Any:
        if isinstance(value, Reference):
            try:
                resource = self.resources[value.resource]
            except KeyError:
                raise ProvisioningError(
                    f"reference to undeclared resource {value.resource!r}"
                ) from None
            return getattr(resource, value.attribute)
        if isinstance(value, dict):
            return {k: self._resolve(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._resolve(v) for v in value]
        return value
