"""
Container registry credentials used by builds inside the pipeline.

Only the grant side is modelled here: a credential knows which identities it
has been granted to, for which usage.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Sequence, Tuple

from pipeline_compiler.plan.identity import Identity, PolicyStatement


class DockerCredentialUsage(str, Enum):
    synth = "synth"
    self_update = "self-update"
    asset_publishing = "asset-publishing"


class RegistryCredential:
    def __init__(
        self,
        registry_domain: str,
        *,
        secret_arn: Optional[str] = None,
        usages: Optional[Sequence[DockerCredentialUsage]] = None,
    ) -> None:
        self.registry_domain = registry_domain
        self.secret_arn = secret_arn
        # None means every usage
        self.usages = list(usages) if usages is not None else None
        self.grants: List[Tuple[str, DockerCredentialUsage]] = []

    def applies_to(self, usage: DockerCredentialUsage) -> bool:
        return self.usages is None or usage in self.usages

    def grant_read(self, identity: Identity, usage: DockerCredentialUsage) -> bool:
        if not self.applies_to(usage):
            return False
        if self.secret_arn:
            statement = PolicyStatement(
                actions=["secretsmanager:GetSecretValue", "secretsmanager:DescribeSecret"],
                resources=[self.secret_arn],
            )
        else:
            statement = PolicyStatement(
                actions=[
                    "ecr:BatchCheckLayerAvailability",
                    "ecr:GetDownloadUrlForLayer",
                    "ecr:BatchGetImage",
                    "ecr:GetAuthorizationToken",
                ],
            )
        added = identity.add_to_policy(statement)
        if added:
            self.grants.append((identity.name, usage))
        return added

    def __repr__(self) -> str:
        return f"RegistryCredential({self.registry_domain!r})"
