"""
Type-safe configuration for the pipeline compiler using Pydantic Settings.

Settings are loaded from `PIPELINE_`-prefixed environment variables and a
`.env` file. Nested build defaults use `__` as the delimiter, e.g.
`PIPELINE_BUILD_DEFAULTS__VPC_ID=vpc-123`.

Usage:
    from shared.config import config

    if config.self_mutation:
        ...
"""
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pipeline_compiler.schema.models import BuildOptions


class PipelineSettings(BaseSettings):
    """
    Central configuration for the pipeline compiler.

    Tests and embedding code construct their own instance; the CLI and
    `PipelineCompiler()` without arguments use the global `config`.
    """
    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    # ============================================================================
    # Pipeline
    # ============================================================================

    pipeline_name: Optional[str] = Field(default=None, description="Name of the delivery pipeline; generated when unset")
    self_mutation: bool = Field(default=True, description="Whether the pipeline updates itself before deploying")
    cross_account_keys: bool = Field(default=False, description="Create KMS keys for cross-account deployments")
    stage_capacity: int = Field(default=50, ge=1, description="Maximum number of leaf nodes per pipeline stage")
    artifact_bucket_name: Optional[str] = Field(default=None, description="Bucket backing the pipeline artifact store")

    pipeline_account: Optional[str] = Field(default=None, description="Account the pipeline stack is deployed to")
    pipeline_region: Optional[str] = Field(default=None, description="Region the pipeline stack is deployed to")
    pipeline_stack_identifier: str = Field(
        default="PipelineStack",
        description="Stack selector passed to the CLI by the self-update action",
    )

    # ============================================================================
    # Assets & Self-mutation
    # ============================================================================

    cli_version: Optional[str] = Field(default=None, description="Pinned version of the deployment CLI tools")
    pipeline_uses_docker_assets: bool = Field(
        default=False,
        description="Run the self-update build privileged so it can handle image assets",
    )
    single_publisher_per_asset_type: bool = Field(
        default=False,
        description="Publishing build specs are stored in the cloud assembly instead of inline",
    )
    embedded_assembly_path: str = Field(
        default="cdk.out",
        description="Path of the cloud assembly inside the self-update build input",
    )

    # ============================================================================
    # Build Defaults
    # ============================================================================

    build_defaults: Optional[BuildOptions] = Field(default=None, description="Defaults applied to every build project")
    asset_publishing_build_defaults: Optional[BuildOptions] = Field(
        default=None,
        description="Defaults applied on top of build_defaults for asset publishing projects",
    )
    self_mutation_build_defaults: Optional[BuildOptions] = Field(
        default=None,
        description="Defaults applied on top of build_defaults for the self-update project",
    )

    # ============================================================================
    # Logging
    # ============================================================================

    log_level: str = Field(default="INFO", description="Log level for compiler loggers")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level '{value}'")
        return level


# ============================================================================
# Global Config Instance
# ============================================================================

config = PipelineSettings()
