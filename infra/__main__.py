"""Main Pulumi program for the crawler lambdas."""

import pulumi
import pulumi_aws as aws

from crawler_lambdas.component import CrawlingLambdas
from crawler_lambdas.config import CrawlerDescriptor, CrawlerSettings
from crawler_lambdas.log import get_logger

logger = get_logger("crawler_lambdas")

config = pulumi.Config("crawlers")
stack = pulumi.get_stack()

# Stream ARN comes from the stack that owns the DynamoDB table
upstream = pulumi.StackReference(config.require("upstream_stack"))
stream_arn = upstream.require_output("dynamodb_stream_arn")

encryption_key = aws.kms.get_key_output(key_id=config.require("kms_key_id"))

caller = aws.get_caller_identity()

overrides = {
    "tier": config.get("tier") or stack,
    "account_id": caller.account_id,
    "region": aws.config.region,
}
if config.get("image_registry"):
    overrides["image_registry"] = config.get("image_registry")
if config.get("schedule_expression"):
    overrides["schedule_expression"] = config.get("schedule_expression")
if config.get_int("timeout"):
    overrides["timeout"] = config.get_int("timeout")
if config.get_object("memory_sizes"):
    overrides["memory_sizes"] = config.get_object("memory_sizes")
if config.get_object("crawlers"):
    overrides["crawlers"] = [
        (
            CrawlerDescriptor(**c)
            if isinstance(c, dict)
            else CrawlerDescriptor(name=c)
        )
        for c in config.get_object("crawlers")
    ]

settings = CrawlerSettings(**overrides)
logger.info(
    "Deploying %d crawlers for tier %s", len(settings.crawlers), settings.tier
)

crawling_lambdas = CrawlingLambdas(
    "crawling-lambdas",
    stream_arn=stream_arn,
    encryption_key_arn=encryption_key.arn,
    settings=settings,
)

pulumi.export("crawler_names", [d.name for d in settings.crawlers])
pulumi.export("crawler_tier", settings.tier)
pulumi.export("composition_state", crawling_lambdas.state)
pulumi.export("region", aws.config.region)
