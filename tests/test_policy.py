"""
Tests for policy documents.
"""

import json

import pytest

from crawler_lambdas.policy import (
    PermissionStatement,
    PolicyDocument,
    build_policy,
    trust_policy,
)
from crawler_lambdas.resolved import ResolvedValue


def _statements(resource):
    return [
        PermissionStatement(
            actions=("dynamodb:GetRecords", "dynamodb:DescribeStream"),
            resource="arn:aws:dynamodb:eu-central-1:1:table/a/stream/x",
        ),
        PermissionStatement(actions=("kms:Decrypt",), resource=resource),
        PermissionStatement(
            actions=("dynamodb:PutItem",), resource="*", effect="Deny"
        ),
    ]


class TestPermissionStatement:
    def test_single_action_serializes_as_string(self) -> None:
        statement = PermissionStatement(actions=("kms:Decrypt",), resource="*")

        assert statement.to_dict() == {
            "Effect": "Allow",
            "Action": "kms:Decrypt",
            "Resource": "*",
        }

    def test_string_action_is_wrapped(self) -> None:
        statement = PermissionStatement(actions="kms:Decrypt", resource="*")
        assert statement.actions == ("kms:Decrypt",)

    def test_rejects_unknown_effect(self) -> None:
        with pytest.raises(ValueError, match="Allow or Deny"):
            PermissionStatement(actions=("s3:GetObject",), effect="Maybe")

    def test_rejects_empty_actions(self) -> None:
        with pytest.raises(ValueError):
            PermissionStatement(actions=())

    def test_deferred_statement_cannot_serialize(self) -> None:
        statement = PermissionStatement(
            actions=("kms:Decrypt",), resource=ResolvedValue("key")
        )
        with pytest.raises(ValueError, match="not been resolved"):
            statement.to_dict()


class TestBuildPolicy:
    def test_literal_resources_build_synchronously(self) -> None:
        document = build_policy(
            _statements("arn:aws:kms:eu-central-1:1:key/k")
        )

        assert isinstance(document, PolicyDocument)
        parsed = json.loads(document.to_json())
        assert parsed["Version"] == "2012-10-17"
        assert [s["Effect"] for s in parsed["Statement"]] == [
            "Allow",
            "Allow",
            "Deny",
        ]

    def test_deferred_resource_returns_handle(self) -> None:
        key = ResolvedValue("key")
        document = build_policy(_statements(key))

        assert isinstance(document, ResolvedValue)
        assert document.is_pending

        key.resolve("arn:aws:kms:eu-central-1:1:key/k")

        resolved = document.value
        assert resolved.statements[1].resource == (
            "arn:aws:kms:eu-central-1:1:key/k"
        )

    def test_statement_order_is_preserved(self) -> None:
        document = build_policy(_statements("k"))
        actions = [s["Action"] for s in document.to_dict()["Statement"]]

        assert actions == [
            ["dynamodb:GetRecords", "dynamodb:DescribeStream"],
            "kms:Decrypt",
            "dynamodb:PutItem",
        ]

    def test_serialization_is_byte_identical_across_runs(self) -> None:
        first_key, second_key = ResolvedValue("k1"), ResolvedValue("k2")
        first = build_policy(_statements(first_key))
        second = build_policy(_statements(second_key))

        second_key.resolve("arn:aws:kms:eu-central-1:1:key/k")
        first_key.resolve("arn:aws:kms:eu-central-1:1:key/k")

        assert first.value.to_json() == second.value.to_json()
        assert first.value.to_json() == (
            build_policy(_statements("arn:aws:kms:eu-central-1:1:key/k"))
            .to_json()
        )


class TestTrustPolicy:
    def test_lambda_is_the_only_principal(self) -> None:
        document = trust_policy().to_dict()

        assert document["Statement"] == [
            {
                "Sid": "",
                "Effect": "Allow",
                "Principal": {"Service": "lambda.amazonaws.com"},
                "Action": "sts:AssumeRole",
            }
        ]
