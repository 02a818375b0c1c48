"""
EventBridge schedules that trigger crawler functions.
"""

import logging
from dataclasses import dataclass

from crawler_lambdas.backend import (
    EVENT_RULE,
    EVENT_TARGET,
    PERMISSION,
    Reference,
    ResourceBackend,
)
from crawler_lambdas.compute import ComputeUnit
from crawler_lambdas.config import validate_schedule_expression
from crawler_lambdas.errors import CompositionConfigError
from crawler_lambdas.policy import EVENTS_SERVICE

logger = logging.getLogger(__name__)

RULE_SUFFIX = "-schedule"
TARGET_SUFFIX = "-target"
PERMISSION_SUFFIX = "-invoke-permission"


@dataclass(frozen=True)
class InvocationGrant:
    resource_name: str
    action: str
    principal: str
    source_rule: str


@dataclass(frozen=True)
class ScheduleBinding:
    """Rule, target and invoke grant attached to one unit."""

    rule_name: str
    target_name: str
    rate_expression: str
    unit_name: str
    grant: InvocationGrant


class ScheduleBinder:
    """
    Attaches a time-based trigger to a unit.

    Names derive from the unit name plus a fixed suffix, so redeploying
    declares the same rule, target and grant instead of new ones. The rule
    and the grant are parented to the unit and the target to the rule;
    deleting the unit removes all three.
    """

    def __init__(self, backend: ResourceBackend, tags=None):
        self.backend = backend
        self.tags = dict(tags or {})
        self._bound = set()

    def bind(self, unit: ComputeUnit, rate_expression: str) -> ScheduleBinding:
        validate_schedule_expression(rate_expression)
        if unit.name in self._bound:
            raise CompositionConfigError(
                f"crawler {unit.name!r} already has a schedule"
            )

        rule_name = f"{unit.name}{RULE_SUFFIX}"
        self.backend.declare(
            EVENT_RULE,
            rule_name,
            {"schedule_expression": rate_expression, "tags": dict(self.tags)},
            parent=unit.name,
        )
        rule_arn = Reference(rule_name, "arn")

        target_name = f"{unit.name}{TARGET_SUFFIX}"
        self.backend.declare(
            EVENT_TARGET,
            target_name,
            {"rule": Reference(rule_name, "name"), "arn": unit.arn},
            parent=rule_name,
        )

        grant = InvocationGrant(
            resource_name=f"{unit.name}{PERMISSION_SUFFIX}",
            action="lambda:InvokeFunction",
            principal=EVENTS_SERVICE,
            source_rule=rule_name,
        )
        self.backend.declare(
            PERMISSION,
            grant.resource_name,
            {
                "action": grant.action,
                "function": unit.function_name,
                "principal": grant.principal,
                "source_arn": rule_arn,
            },
            parent=unit.name,
        )

        binding = ScheduleBinding(
            rule_name=rule_name,
            target_name=target_name,
            rate_expression=rate_expression,
            unit_name=unit.name,
            grant=grant,
        )
        unit.schedules.append(binding)
        self._bound.add(unit.name)
        logger.info("Scheduled %s with %s", unit.name, rate_expression)
        return binding
