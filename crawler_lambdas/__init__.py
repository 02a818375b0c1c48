"""
Crawler Lambdas

Declares the periodic crawler Lambdas that react to the DynamoDB change
stream:
- resolved: single-shot handles for values produced by earlier steps
- policy: deterministic IAM policy documents
- identity: the execution role shared by every crawler
- compute: crawler functions and their stream mappings
- schedule: EventBridge schedules and invoke grants
- composition: the ordered state machine tying them together
- component: the Pulumi ComponentResource used by the infra program
"""

from crawler_lambdas.backend import RecordingBackend, Reference
from crawler_lambdas.composition import (
    CompositionRoot,
    CompositionState,
    DeclaredComposition,
)
from crawler_lambdas.compute import (
    ComputeUnit,
    ComputeUnitFactory,
    StreamMapping,
)
from crawler_lambdas.config import (
    CrawlerDescriptor,
    CrawlerSettings,
    get_settings,
    validate_schedule_expression,
)
from crawler_lambdas.errors import (
    CompositionConfigError,
    CompositionIncompleteError,
    CrawlerLambdasError,
    ProvisioningError,
    ResolutionError,
)
from crawler_lambdas.identity import ExecutionIdentity, IdentityBuilder
from crawler_lambdas.policy import (
    PermissionStatement,
    PolicyDocument,
    build_policy,
)
from crawler_lambdas.resolved import ResolvedValue, combine
from crawler_lambdas.schedule import ScheduleBinder, ScheduleBinding

__version__ = "0.1.0"

__all__ = [
    # Handles and policies
    "ResolvedValue",
    "combine",
    "PermissionStatement",
    "PolicyDocument",
    "build_policy",
    # Resources
    "ExecutionIdentity",
    "IdentityBuilder",
    "ComputeUnit",
    "ComputeUnitFactory",
    "StreamMapping",
    "ScheduleBinder",
    "ScheduleBinding",
    # Composition
    "CompositionRoot",
    "CompositionState",
    "DeclaredComposition",
    "RecordingBackend",
    "Reference",
    # Configuration
    "CrawlerDescriptor",
    "CrawlerSettings",
    "get_settings",
    "validate_schedule_expression",
    # Errors
    "CrawlerLambdasError",
    "CompositionConfigError",
    "CompositionIncompleteError",
    "ProvisioningError",
    "ResolutionError",
]
