"""
Per-category cache of the execution identity shared by asset publishing
builds.

Creating one identity per asset category (instead of one per publishing
action) keeps the produced pipeline small. The identity is fully configured
on first request and frozen afterwards; the only thing that keeps growing is
the set of publishing roles it may assume, which is read lazily when the
plan is finalized.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Sequence, Set

from pipeline_compiler.credentials import DockerCredentialUsage, RegistryCredential
from pipeline_compiler.errors import PipelineCompilerError
from pipeline_compiler.plan.identity import BUILD_SERVICE_PRINCIPAL, Identity, LazyList, Policy, PolicyStatement
from pipeline_compiler.plan.pipeline import DeliveryPipeline
from pipeline_compiler.schema.models import AssetType, BuildOptions
from shared.logger import get_logger

logger = get_logger("pipeline_compiler.resource_cache")

DEFAULT_PARTITION = "${AWS::Partition}"
DEFAULT_REGION = "${AWS::Region}"
DEFAULT_ACCOUNT = "${AWS::AccountId}"


@dataclass(frozen=True)
class SharedResource:
    identity: Identity
    # Consumers of `identity` must depend on this when present
    dependable: Optional[Policy] = None


class ResourceCache:
    def __init__(
        self,
        pipeline: DeliveryPipeline,
        *,
        credentials: Sequence[RegistryCredential] = (),
        asset_build_options: Optional[BuildOptions] = None,
        account: Optional[str] = None,
        region: Optional[str] = None,
    ) -> None:
        self._pipeline = pipeline
        self._credentials = list(credentials)
        self._asset_build_options = asset_build_options
        self._account = account or DEFAULT_ACCOUNT
        self._region = region or DEFAULT_REGION
        self._resources: Dict[str, SharedResource] = {}
        self._assumable: Dict[str, Set[str]] = {}
        self._sealed = False

    # ------------------------------------------------------------------
    # Assumable publishing roles
    # ------------------------------------------------------------------
    def register_assumable(self, category: AssetType | str, role_arns: Iterable[Optional[str]]) -> None:
        self._ensure_open(category)
        key = _category_key(category)
        roles = self._assumable.setdefault(key, set())
        for arn in role_arns:
            if arn:
                roles.add(arn)

    def assumable(self, category: AssetType | str) -> FrozenSet[str]:
        return frozenset(self._assumable.get(_category_key(category), ()))

    @property
    def assumable_sets(self) -> Mapping[str, FrozenSet[str]]:
        return MappingProxyType({key: frozenset(value) for key, value in self._assumable.items()})

    # ------------------------------------------------------------------
    # Shared identities
    # ------------------------------------------------------------------
    @property
    def identities(self) -> Mapping[str, Identity]:
        return MappingProxyType({key: res.identity for key, res in self._resources.items()})

    def obtain(self, category: AssetType | str) -> SharedResource:
        key = _category_key(category)
        cached = self._resources.get(key)
        if cached is not None:
            return cached

        self._ensure_open(category)
        resource = self._construct(key)
        self._resources[key] = resource
        logger.info("Created shared publishing identity '%s' for category '%s'", resource.identity.name, key)
        return resource

    def seal(self) -> None:
        self._sealed = True

    def _ensure_open(self, category: AssetType | str) -> None:
        if self._sealed:
            raise PipelineCompilerError(
                f"Resource cache is sealed; cannot register category '{_category_key(category)}' after compilation"
            )

    def _construct(self, key: str) -> SharedResource:
        prefix = "Docker" if key == AssetType.docker_image.value else "File"
        role = Identity(f"{prefix}Role", assumed_by=[BUILD_SERVICE_PRINCIPAL, f"account:{self._account}"])

        role.add_to_policy(
            PolicyStatement(
                actions=["logs:CreateLogGroup", "logs:CreateLogStream", "logs:PutLogEvents"],
                resources=[self._arn("logs", "log-group:/aws/codebuild/*")],
            )
        )
        role.add_to_policy(
            PolicyStatement(
                actions=[
                    "codebuild:CreateReportGroup",
                    "codebuild:CreateReport",
                    "codebuild:UpdateReport",
                    "codebuild:BatchPutTestCases",
                    "codebuild:BatchPutCodeCoverages",
                ],
                resources=[self._arn("codebuild", "report-group/*")],
            )
        )
        role.add_to_policy(
            PolicyStatement(
                actions=["codebuild:BatchGetBuilds", "codebuild:StartBuild", "codebuild:StopBuild"],
                resources=["*"],
            )
        )
        # Resolved at finalization so every publishing role registered later
        # in the walk is included.
        role.add_to_policy(
            PolicyStatement(
                actions=["sts:AssumeRole"],
                resources=LazyList(lambda: sorted(self._assumable.get(key, ()))),
            )
        )

        if key == AssetType.docker_image.value:
            for credential in self._credentials:
                credential.grant_read(role, DockerCredentialUsage.asset_publishing)

        self._pipeline.artifact_store.grant_read(role)

        dependable: Optional[Policy] = None
        options = self._asset_build_options
        if options is not None and options.vpc_id:
            dependable = self._vpc_policy(options)
            role.attach_inline_policy(dependable)

        return SharedResource(identity=role.without_policy_updates(), dependable=dependable)

    def _vpc_policy(self, options: BuildOptions) -> Policy:
        subnet_arns = [
            f"arn:{DEFAULT_PARTITION}:ec2:{self._region}:{self._account}:subnet/{subnet_id}"
            for subnet_id in options.subnet_ids
        ]
        return Policy(
            name="VpcPolicy",
            statements=[
                PolicyStatement(
                    actions=["ec2:CreateNetworkInterfacePermission"],
                    resources=[f"arn:{DEFAULT_PARTITION}:ec2:{self._region}:{self._account}:network-interface/*"],
                    conditions={
                        "StringEquals": {
                            "ec2:Subnet": subnet_arns,
                            "ec2:AuthorizedService": BUILD_SERVICE_PRINCIPAL,
                        }
                    },
                ),
                PolicyStatement(
                    actions=[
                        "ec2:CreateNetworkInterface",
                        "ec2:DescribeNetworkInterfaces",
                        "ec2:DeleteNetworkInterface",
                        "ec2:DescribeSubnets",
                        "ec2:DescribeSecurityGroups",
                        "ec2:DescribeDhcpOptions",
                        "ec2:DescribeVpcs",
                    ],
                    resources=["*"],
                ),
            ],
        )

    def _arn(self, service: str, resource: str) -> str:
        return f"arn:{DEFAULT_PARTITION}:{service}:{self._region}:{self._account}:{resource}"


def _category_key(category: AssetType | str) -> str:
    return category.value if isinstance(category, AssetType) else str(category)
