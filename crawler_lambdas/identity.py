"""
The execution role shared by every crawler function.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from crawler_lambdas.backend import ROLE, Reference, ResourceBackend
from crawler_lambdas.config import CrawlerSettings
from crawler_lambdas.errors import CompositionConfigError
from crawler_lambdas.policy import (
    PermissionStatement,
    PolicyDocument,
    build_policy,
    trust_policy,
)
from crawler_lambdas.resolved import ResolvedValue, combine

logger = logging.getLogger(__name__)

STREAM_READ_POLICY = "DynamoDBStreamRead"
LOG_WRITE_POLICY = "LambdaCloudWatchLogs"
KEY_DECRYPT_POLICY = "KMSDecryptPermission"
RESULT_WRITE_POLICY = "DynamoDBWriteAccess"


@dataclass(frozen=True)
class ExecutionIdentity:
    """
    One IAM role assumed by all crawler functions.

    Units hold this object by reference and point their ``role`` input at
    ``arn``; the identity is never copied per unit.
    """

    resource_name: str
    trust_policy: PolicyDocument
    inline_policies: Tuple[Tuple[str, PolicyDocument], ...]
    tags: Tuple[Tuple[str, str], ...]

    @property
    def arn(self) -> Reference:
        return Reference(self.resource_name, "arn")

    @property
    def policies(self) -> Dict[str, PolicyDocument]:
        return dict(self.inline_policies)


def identity_policies(
    settings: CrawlerSettings,
    stream_arn: str,
    encryption_key_arn: ResolvedValue,
) -> List[Tuple[str, object]]:
    """Inline policies of the execution role, in declaration order.

    The key-decrypt document is deferred until the key ARN resolves.
    """
    return [
        (
            STREAM_READ_POLICY,
            build_policy(
                [
                    PermissionStatement(
                        actions=(
                            "dynamodb:GetRecords",
                            "dynamodb:GetShardIterator",
                            "dynamodb:DescribeStream",
                            "dynamodb:ListStreams",
                        ),
                        resource=stream_arn,
                    )
                ]
            ),
        ),
        (
            LOG_WRITE_POLICY,
            build_policy(
                [
                    PermissionStatement(
                        actions=(
                            "logs:CreateLogGroup",
                            "logs:CreateLogStream",
                            "logs:PutLogEvents",
                        ),
                        resource=settings.log_group_arn,
                    )
                ]
            ),
        ),
        (
            KEY_DECRYPT_POLICY,
            build_policy(
                [
                    PermissionStatement(
                        actions=("kms:Decrypt",),
                        resource=encryption_key_arn,
                    )
                ]
            ),
        ),
        # Intentionally every table, not only the result table. Candidate
        # for tightening; narrowing it changes what crawlers may write.
        (
            RESULT_WRITE_POLICY,
            build_policy(
                [
                    PermissionStatement(
                        actions=(
                            "dynamodb:PutItem",
                            "dynamodb:UpdateItem",
                            "dynamodb:DeleteItem",
                        ),
                        resource="*",
                    )
                ]
            ),
        ),
    ]


class IdentityBuilder:
    """Builds the execution identity, at most once per composition."""

    def __init__(self, backend: ResourceBackend, settings: CrawlerSettings):
        self.backend = backend
        self.settings = settings
        self._built = False

    def build(
        self, stream_arn: str, encryption_key_arn: ResolvedValue
    ) -> ResolvedValue:
        """
        Declare the execution role once every policy document is final.

        Args:
            stream_arn: The resolved stream ARN
            encryption_key_arn: Handle for the KMS key ARN

        Returns:
            Handle resolving to the ExecutionIdentity

        Raises:
            CompositionConfigError: If called a second time
        """
        if self._built:
            raise CompositionConfigError(
                "execution identity already built for this composition"
            )
        self._built = True

        policies = identity_policies(
            self.settings, stream_arn, encryption_key_arn
        )
        names = [name for name, _ in policies]
        return combine(*(document for _, document in policies)).on_resolved(
            lambda documents: self._declare(list(zip(names, documents)))
        )

    def _declare(
        self, policies: List[Tuple[str, PolicyDocument]]
    ) -> ExecutionIdentity:
        identity = ExecutionIdentity(
            resource_name=self.settings.role_name,
            trust_policy=trust_policy(),
            inline_policies=tuple(policies),
            tags=tuple(self.settings.tags.items()),
        )
        self.backend.declare(
            ROLE,
            identity.resource_name,
            {
                "assume_role_policy": identity.trust_policy.to_json(),
                "inline_policies": [
                    {"name": name, "policy": document.to_json()}
                    for name, document in identity.inline_policies
                ],
                "tags": dict(identity.tags),
            },
        )
        logger.info(
            "Declared execution identity %s with policies %s",
            identity.resource_name,
            ", ".join(name for name, _ in policies),
        )
        return identity
