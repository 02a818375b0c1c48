"""
Pytest fixtures for crawler_lambdas tests.

Core tests run against RecordingBackend with handles the test settles by
hand, so ordering can be checked step by step.
"""

import os
from typing import Generator
from unittest.mock import patch

import pytest

from crawler_lambdas.backend import RecordingBackend
from crawler_lambdas.composition import CompositionRoot
from crawler_lambdas.config import CrawlerSettings, get_settings
from crawler_lambdas.resolved import ResolvedValue

ACCOUNT_ID = "123456789012"
REGION = "eu-central-1"
STREAM_ARN = (
    "arn:aws:dynamodb:eu-central-1:123456789012:"
    "table/ocr/stream/2024-01-01T00:00:00.000"
)
KEY_ARN = (
    "arn:aws:kms:eu-central-1:123456789012:"
    "key/1234abcd-12ab-34cd-56ef-1234567890ab"
)


@pytest.fixture(autouse=True)
def clean_environment() -> Generator[None, None, None]:
    """Keep CRAWLER_LAMBDAS_* variables from the shell out of the tests."""
    cleaned = {
        k: v
        for k, v in os.environ.items()
        if not k.startswith("CRAWLER_LAMBDAS_")
    }
    with patch.dict(os.environ, cleaned, clear=True):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()


@pytest.fixture
def settings() -> CrawlerSettings:
    return CrawlerSettings(account_id=ACCOUNT_ID, region=REGION)


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def stream() -> ResolvedValue:
    return ResolvedValue("stream_arn")


@pytest.fixture
def key() -> ResolvedValue:
    return ResolvedValue("encryption_key_arn")


@pytest.fixture
def make_root(backend, settings, stream, key):
    """Build a CompositionRoot over the shared fixtures."""

    def _make(crawlers=None, **overrides) -> CompositionRoot:
        configured = (
            settings.model_copy(update=overrides) if overrides else settings
        )
        return CompositionRoot(
            backend,
            configured,
            stream_arn=stream,
            encryption_key_arn=key,
            crawlers=crawlers,
        )

    return _make
