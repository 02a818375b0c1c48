"""
Tests for the shared execution identity.
"""

import json

import pytest

from crawler_lambdas.backend import ROLE, RecordingBackend, Reference
from crawler_lambdas.config import CrawlerSettings
from crawler_lambdas.errors import CompositionConfigError
from crawler_lambdas.identity import (
    KEY_DECRYPT_POLICY,
    LOG_WRITE_POLICY,
    RESULT_WRITE_POLICY,
    STREAM_READ_POLICY,
    IdentityBuilder,
)
from crawler_lambdas.resolved import ResolvedValue

from .conftest import KEY_ARN, STREAM_ARN


@pytest.fixture
def builder(
    backend: RecordingBackend, settings: CrawlerSettings
) -> IdentityBuilder:
    return IdentityBuilder(backend, settings)


class TestIdentityBuilder:
    def test_waits_for_encryption_key(
        self,
        builder: IdentityBuilder,
        backend: RecordingBackend,
        key: ResolvedValue,
    ) -> None:
        identity = builder.build(STREAM_ARN, key)

        assert identity.is_pending
        assert len(backend) == 0

        key.resolve(KEY_ARN)

        assert identity.is_resolved
        assert backend.names(ROLE) == [
            "lambda-crawling-processing-execution-role"
        ]

    def test_declares_four_policies_in_order(
        self, builder: IdentityBuilder, backend: RecordingBackend
    ) -> None:
        identity = builder.build(STREAM_ARN, ResolvedValue.of(KEY_ARN)).value

        assert list(identity.policies) == [
            STREAM_READ_POLICY,
            LOG_WRITE_POLICY,
            KEY_DECRYPT_POLICY,
            RESULT_WRITE_POLICY,
        ]
        declared = backend.get(identity.resource_name).properties
        assert [p["name"] for p in declared["inline_policies"]] == [
            STREAM_READ_POLICY,
            LOG_WRITE_POLICY,
            KEY_DECRYPT_POLICY,
            RESULT_WRITE_POLICY,
        ]

    def test_policy_resources(self, builder: IdentityBuilder) -> None:
        identity = builder.build(STREAM_ARN, ResolvedValue.of(KEY_ARN)).value
        statements = {
            name: document.to_dict()["Statement"][0]
            for name, document in identity.inline_policies
        }

        assert statements[STREAM_READ_POLICY]["Resource"] == STREAM_ARN
        assert statements[STREAM_READ_POLICY]["Action"] == [
            "dynamodb:GetRecords",
            "dynamodb:GetShardIterator",
            "dynamodb:DescribeStream",
            "dynamodb:ListStreams",
        ]
        assert statements[LOG_WRITE_POLICY]["Resource"] == (
            "arn:aws:logs:eu-central-1:123456789012:"
            "log-group:/aws/lambda/*:*"
        )
        assert statements[KEY_DECRYPT_POLICY] == {
            "Effect": "Allow",
            "Action": "kms:Decrypt",
            "Resource": KEY_ARN,
        }
        assert statements[RESULT_WRITE_POLICY]["Resource"] == "*"

    def test_trust_policy_names_lambda(
        self, builder: IdentityBuilder, backend: RecordingBackend
    ) -> None:
        identity = builder.build(STREAM_ARN, ResolvedValue.of(KEY_ARN)).value
        trust = json.loads(
            backend.get(identity.resource_name).properties[
                "assume_role_policy"
            ]
        )

        assert trust["Statement"][0]["Principal"] == {
            "Service": "lambda.amazonaws.com"
        }
        assert trust["Statement"][0]["Action"] == "sts:AssumeRole"

    def test_tags(
        self, builder: IdentityBuilder, backend: RecordingBackend
    ) -> None:
        identity = builder.build(STREAM_ARN, ResolvedValue.of(KEY_ARN)).value

        assert backend.get(identity.resource_name).properties["tags"] == {
            "module": "ai",
            "scope": "crawlinglambdas",
        }
        assert identity.arn == Reference(identity.resource_name, "arn")

    def test_built_at_most_once(self, builder: IdentityBuilder) -> None:
        builder.build(STREAM_ARN, ResolvedValue.of(KEY_ARN))

        with pytest.raises(CompositionConfigError, match="already built"):
            builder.build(STREAM_ARN, ResolvedValue.of(KEY_ARN))

    def test_key_failure_declares_nothing(
        self,
        builder: IdentityBuilder,
        backend: RecordingBackend,
        key: ResolvedValue,
    ) -> None:
        identity = builder.build(STREAM_ARN, key)

        key.fail(RuntimeError("key scheduled for deletion"))

        assert identity.is_failed
        assert len(backend) == 0
