"""
Pulumi component for the crawler lambdas.

Creates, once the DynamoDB stream ARN is known:
- One execution role shared by every crawler
- One container-image Lambda per crawler
- A DynamoDB stream mapping per Lambda (starting from LATEST)
- An EventBridge schedule, target and invoke permission per Lambda
"""

from typing import Optional

import pulumi
from pulumi import ComponentResource, ResourceOptions

from crawler_lambdas.composition import CompositionRoot
from crawler_lambdas.config import CrawlerSettings
from crawler_lambdas.pulumi_backend import PulumiBackend
from crawler_lambdas.resolved import ResolvedValue


class CrawlingLambdas(ComponentResource):
    """
    ComponentResource wiring the crawler Lambdas to the stream.

    Exports:
    - crawlers: Names of the crawler Lambdas declared
    - role_name: Logical name of the shared execution role
    - state: Composition state once the stream and key have settled
    """

    def __init__(
        self,
        name: str,
        *,
        stream_arn: pulumi.Input[str],
        encryption_key_arn: pulumi.Input[str],
        settings: CrawlerSettings,
        opts: Optional[ResourceOptions] = None,
    ):
        super().__init__(
            f"crawlers:ai:{type(self).__name__.lower()}", name, None, opts
        )

        self.backend = PulumiBackend(parent=self)
        self.composition = CompositionRoot(
            self.backend,
            settings,
            stream_arn=ResolvedValue.from_output(stream_arn, "stream_arn"),
            encryption_key_arn=ResolvedValue.from_output(
                encryption_key_arn, "encryption_key_arn"
            ),
        )
        pulumi.log.info(
            f"Declaring {len(self.composition.crawlers)} crawler lambdas "
            f"for tier '{settings.tier}'",
            resource=self,
        )
        self.composition.declare().on_failed(
            lambda error: pulumi.log.error(
                f"Crawler composition halted in "
                f"{self.composition.state.value}: {error}",
                resource=self,
            )
        )

        # Settles once both inputs have settled and the composition ran.
        self.state = pulumi.Output.all(
            self.composition.stream_arn.source,
            self.composition.encryption_key_arn.source,
        ).apply(lambda _: self.composition.state.value)

        self.register_outputs(
            {
                "crawlers": [d.name for d in self.composition.crawlers],
                "role_name": settings.role_name,
                "state": self.state,
            }
        )
