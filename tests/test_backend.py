"""
Tests for RecordingBackend.
"""

import pytest

from crawler_lambdas.backend import (
    EVENT_RULE,
    EVENT_SOURCE_MAPPING,
    EVENT_TARGET,
    FUNCTION,
    ROLE,
    RecordingBackend,
    Reference,
    iter_references,
)
from crawler_lambdas.errors import ProvisioningError


@pytest.fixture
def populated(backend: RecordingBackend) -> RecordingBackend:
    backend.declare(ROLE, "role", {})
    backend.declare(FUNCTION, "fn", {"role": Reference("role", "arn")})
    backend.declare(EVENT_SOURCE_MAPPING, "fn-mapping", {}, parent="fn")
    backend.declare(EVENT_RULE, "fn-rule", {}, parent="fn")
    backend.declare(
        EVENT_TARGET,
        "fn-target",
        {"rule": Reference("fn-rule", "name")},
        parent="fn-rule",
    )
    return backend


class TestDeclare:
    def test_records_in_order(self, populated: RecordingBackend) -> None:
        assert populated.names() == [
            "role",
            "fn",
            "fn-mapping",
            "fn-rule",
            "fn-target",
        ]
        assert populated.names(FUNCTION) == ["fn"]
        assert len(populated) == 5
        assert "fn-target" in populated

    def test_duplicate_name_is_refused(
        self, populated: RecordingBackend
    ) -> None:
        with pytest.raises(ProvisioningError, match="already exists"):
            populated.declare(FUNCTION, "fn", {})

    def test_unknown_parent_is_refused(
        self, backend: RecordingBackend
    ) -> None:
        with pytest.raises(ProvisioningError, match="has not been declared"):
            backend.declare(EVENT_RULE, "rule", {}, parent="missing")
        assert len(backend) == 0

    def test_dangling_reference_is_refused(
        self, backend: RecordingBackend
    ) -> None:
        with pytest.raises(ProvisioningError, match="undeclared"):
            backend.declare(
                FUNCTION,
                "fn",
                {"environment": {"role": [Reference("role", "arn")]}},
            )

    def test_unsupported_kind_is_refused(
        self, backend: RecordingBackend
    ) -> None:
        with pytest.raises(ProvisioningError, match="unsupported"):
            backend.declare("aws:s3/bucket:Bucket", "bucket", {})

    def test_children_are_tracked(self, populated: RecordingBackend) -> None:
        assert populated.get("fn").children == ["fn-mapping", "fn-rule"]
        assert populated.descendants("fn") == [
            "fn-mapping",
            "fn-rule",
            "fn-target",
        ]


class TestDelete:
    def test_cascades_to_children(self, populated: RecordingBackend) -> None:
        removed = populated.delete("fn")

        assert removed == ["fn-target", "fn-rule", "fn-mapping", "fn"]
        assert populated.names() == ["role"]

    def test_deleting_child_detaches_it(
        self, populated: RecordingBackend
    ) -> None:
        populated.delete("fn-rule")

        assert populated.get("fn").children == ["fn-mapping"]
        assert "fn-target" not in populated

    def test_missing_resource(self, backend: RecordingBackend) -> None:
        with pytest.raises(ProvisioningError, match="does not exist"):
            backend.delete("ghost")


def test_iter_references_walks_nested_values() -> None:
    refs = list(
        iter_references(
            {
                "a": Reference("x", "arn"),
                "b": [1, {"c": (Reference("y", "name"),)}],
            }
        )
    )
    assert refs == [Reference("x", "arn"), Reference("y", "name")]
