from __future__ import annotations

import pytest

from shared.config import PipelineSettings


def make_settings(**overrides) -> PipelineSettings:
    # Ignore any local .env so results do not depend on the developer machine.
    values = {
        "pipeline_name": "Demo",
        "artifact_bucket_name": "artifacts",
        "self_mutation": False,
    }
    values.update(overrides)
    return PipelineSettings(_env_file=None, **values)


@pytest.fixture
def settings() -> PipelineSettings:
    return make_settings()


@pytest.fixture
def settings_factory():
    return make_settings
