"""
Configuration for crawler lambda composition.

Uses pydantic-settings for environment variable management. Values that used
to be hard-coded next to the resources (account, region, memory table) are
plain settings here and are supplied by the Pulumi program.
"""

import re
from functools import lru_cache
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from crawler_lambdas.errors import CompositionConfigError

DEFAULT_CRAWLERS = (
    "github-crawler-latest",
    "linkedin-crawler-latest",
    "medium-crawler-latest",
)

_RATE_PATTERN = re.compile(
    r"^rate\((?P<value>[1-9][0-9]*) (?P<unit>minutes?|hours?|days?)\)$"
)
_CRON_PATTERN = re.compile(r"^cron\((?P<fields>[^()]+)\)$")


def validate_schedule_expression(expression: str) -> str:
    """
    Check an EventBridge schedule expression.

    Accepts ``rate(<n> <unit>)`` where the unit is singular exactly when
    ``n`` is 1, and ``cron(...)`` with six fields.

    Raises:
        CompositionConfigError: If the expression is malformed
    """
    if not isinstance(expression, str):
        raise CompositionConfigError(
            f"schedule expression must be a string, got {expression!r}"
        )
    rate = _RATE_PATTERN.match(expression)
    if rate:
        singular = not rate.group("unit").endswith("s")
        if singular != (rate.group("value") == "1"):
            raise CompositionConfigError(
                f"malformed rate expression {expression!r}: use a singular "
                "unit for 1 and a plural unit otherwise"
            )
        return expression
    cron = _CRON_PATTERN.match(expression)
    if cron and len(cron.group("fields").split()) == 6:
        return expression
    raise CompositionConfigError(
        f"malformed schedule expression {expression!r}; expected "
        "'rate(<n> <unit>)' or 'cron(<6 fields>)'"
    )


class CrawlerDescriptor(BaseModel):
    """One crawler to deploy, with optional per-crawler overrides."""

    name: str = Field(..., min_length=1, max_length=64)
    schedule_expression: Optional[str] = None
    memory_size: Optional[int] = Field(default=None, ge=128, le=10240)
    environment: Dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not re.fullmatch(r"[A-Za-z0-9_-]+", v):
            raise ValueError(
                f"crawler name {v!r} may only contain letters, digits, "
                "hyphens and underscores"
            )
        return v


class CrawlerSettings(BaseSettings):
    """Settings for one composition of crawler lambdas."""

    model_config = SettingsConfigDict(
        env_prefix="CRAWLER_LAMBDAS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Deployment tier selecting the memory size
    tier: str = Field(default="dev", description="Deployment tier")
    memory_sizes: Dict[str, int] = Field(
        default_factory=lambda: {
            "dev": 3008,
            "test": 5102,
            "production": 10240,
        },
        description="Function memory size in MB per tier",
    )

    # Account and region used in ARN templates and the image registry
    account_id: str = Field(..., description="AWS account id")
    region: str = Field(..., description="AWS region")
    image_registry: Optional[str] = Field(
        default=None,
        description="ECR repository URL; derived from account and region",
    )

    # Function configuration
    timeout: int = Field(default=900, ge=1, le=900)
    architecture: Literal["arm64", "x86_64"] = "arm64"
    result_table: str = Field(default="crawler-results")
    starting_position: Literal["LATEST"] = "LATEST"
    schedule_expression: str = Field(default="rate(1 day)")

    role_name: str = Field(default="lambda-crawling-processing-execution-role")
    tags: Dict[str, str] = Field(
        default_factory=lambda: {"module": "ai", "scope": "crawlinglambdas"}
    )

    crawlers: List[CrawlerDescriptor] = Field(
        default_factory=lambda: [
            CrawlerDescriptor(name=name) for name in DEFAULT_CRAWLERS
        ]
    )

    def memory_for_tier(self, tier: Optional[str] = None) -> int:
        """Look up the memory size for ``tier`` (defaults to the active tier).

        Raises:
            CompositionConfigError: If the tier has no entry in the table
        """
        tier = self.tier if tier is None else tier
        try:
            return self.memory_sizes[tier]
        except KeyError:
            raise CompositionConfigError(
                f"unrecognized deployment tier {tier!r}; "
                f"expected one of {sorted(self.memory_sizes)}"
            ) from None

    @property
    def registry(self) -> str:
        return (
            self.image_registry
            or f"{self.account_id}.dkr.ecr.{self.region}.amazonaws.com/ai"
        )

    def image_uri(self, name: str) -> str:
        return f"{self.registry}:{name}"

    @property
    def log_group_arn(self) -> str:
        return (
            f"arn:aws:logs:{self.region}:{self.account_id}"
            ":log-group:/aws/lambda/*:*"
        )


@lru_cache
def get_settings() -> CrawlerSettings:
    """Get cached settings instance."""
    return CrawlerSettings()
