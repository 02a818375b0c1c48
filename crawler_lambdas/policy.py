"""
IAM policy documents built from declarative permission statements.

Serialization keeps statement order and a fixed key order so the same input
always produces byte-identical JSON; Pulumi diffs the policy text, and a
reordered document would show up as a change on every run.
"""

import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from crawler_lambdas.resolved import ResolvedValue, combine

POLICY_VERSION = "2012-10-17"

ALLOW = "Allow"
DENY = "Deny"

LAMBDA_SERVICE = "lambda.amazonaws.com"
EVENTS_SERVICE = "events.amazonaws.com"


@dataclass(frozen=True)
class PermissionStatement:
    """A single Allow/Deny statement.

    ``resource`` may be a ResolvedValue when the target ARN is produced by an
    earlier step. Trust statements carry a ``principal`` and no resource.
    """

    actions: Tuple[str, ...]
    resource: Union[None, str, ResolvedValue] = None
    effect: str = ALLOW
    principal: Optional[str] = None
    sid: Optional[str] = None

    def __post_init__(self):
        if self.effect not in (ALLOW, DENY):
            raise ValueError(
                f"effect must be Allow or Deny, got {self.effect!r}"
            )
        if isinstance(self.actions, str):
            object.__setattr__(self, "actions", (self.actions,))
        else:
            object.__setattr__(self, "actions", tuple(self.actions))
        if not self.actions:
            raise ValueError("a statement needs at least one action")

    @property
    def is_deferred(self) -> bool:
        return isinstance(self.resource, ResolvedValue)

    def to_dict(self) -> Dict[str, Any]:
        if self.is_deferred:
            raise ValueError("statement resource has not been resolved")
        statement: Dict[str, Any] = {}
        if self.sid is not None:
            statement["Sid"] = self.sid
        statement["Effect"] = self.effect
        if self.principal is not None:
            statement["Principal"] = {"Service": self.principal}
        statement["Action"] = (
            self.actions[0] if len(self.actions) == 1 else list(self.actions)
        )
        if self.resource is not None:
            statement["Resource"] = self.resource
        return statement


@dataclass(frozen=True)
class PolicyDocument:
    statements: Tuple[PermissionStatement, ...]
    version: str = POLICY_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Version": self.version,
            "Statement": [s.to_dict() for s in self.statements],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def build_policy(
    statements: Sequence[PermissionStatement], version: str = POLICY_VERSION
) -> Union[PolicyDocument, ResolvedValue]:
    """
    Assemble a policy document from statements.

    Args:
        statements: Statements in the order they should be serialized
        version: Policy language version tag

    Returns:
        A PolicyDocument when every resource is a literal, otherwise a
        ResolvedValue that resolves to the PolicyDocument once every deferred
        resource is known.
    """
    statements = tuple(statements)
    deferred = [s for s in statements if s.is_deferred]
    if not deferred:
        return PolicyDocument(statements=statements, version=version)

    def _finalize(resources: Tuple[Any, ...]) -> PolicyDocument:
        resolved = iter(resources)
        return PolicyDocument(
            statements=tuple(
                replace(s, resource=next(resolved)) if s.is_deferred else s
                for s in statements
            ),
            version=version,
        )

    return combine(*(s.resource for s in deferred)).on_resolved(_finalize)


def trust_policy(service: str = LAMBDA_SERVICE) -> PolicyDocument:
    """Trust policy naming ``service`` as the only principal allowed to
    assume the role."""
    return build_policy(
        [
            PermissionStatement(
                actions=("sts:AssumeRole",),
                principal=service,
                sid="",
            )
        ]
    )
