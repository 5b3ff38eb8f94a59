"""
Execution identities (roles) and the policy statements granted to them.

Statements may carry a deferred resource list whose contents are only known
once the whole graph has been walked; `Identity.policy_document()` resolves
those at finalization time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence, Union

from pipeline_compiler.schema.models import PolicyStatementSpec

BUILD_SERVICE_PRINCIPAL = "codebuild.amazonaws.com"


class LazyList:
    """
    A list whose value is produced on demand. Resolving twice re-runs the
    producer, so the result always reflects every insertion made so far.
    """

    def __init__(self, produce: Callable[[], Sequence[str]]) -> None:
        self._produce = produce

    def resolve(self) -> List[str]:
        return list(self._produce())

    def __repr__(self) -> str:
        return "LazyList(<deferred>)"


Resources = Union[List[str], LazyList]


@dataclass
class PolicyStatement:
    actions: List[str]
    resources: Resources = field(default_factory=lambda: ["*"])
    conditions: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_spec(cls, spec: PolicyStatementSpec) -> PolicyStatement:
        return cls(
            actions=list(spec.actions),
            resources=list(spec.resources),
            conditions={k: dict(v) for k, v in spec.conditions.items()},
        )

    @property
    def is_deferred(self) -> bool:
        return isinstance(self.resources, LazyList)

    def render(self) -> Dict[str, Any]:
        resources = self.resources.resolve() if isinstance(self.resources, LazyList) else list(self.resources)
        rendered: Dict[str, Any] = {
            "Effect": "Allow",
            "Action": list(self.actions),
            "Resource": resources,
        }
        if self.conditions:
            rendered["Condition"] = self.conditions
        return rendered


@dataclass
class Policy:
    """
    Standalone policy attached to an identity. Consumers of that identity
    must depend on it so they are not started before it exists.
    """

    name: str
    statements: List[PolicyStatement] = field(default_factory=list)

    def document(self) -> Dict[str, Any]:
        return {
            "Version": "2012-10-17",
            "Statement": [statement.render() for statement in self.statements],
        }


class Identity:
    def __init__(self, name: str, *, assumed_by: Sequence[str] = ()) -> None:
        self.name = name
        self.assumed_by = list(assumed_by)
        self.statements: List[PolicyStatement] = []
        self.attached_policies: List[Policy] = []

    @property
    def inner(self) -> Identity:
        return self

    @property
    def mutable(self) -> bool:
        return True

    def add_to_policy(self, statement: PolicyStatement) -> bool:
        """
        Grant `statement` to this identity. Returns whether it was added.
        """

        self.statements.append(statement)
        return True

    def attach_inline_policy(self, policy: Policy) -> None:
        self.attached_policies.append(policy)

    def without_policy_updates(self) -> Identity:
        return ImmutableIdentity(self)

    def policy_document(self) -> Dict[str, Any]:
        return {
            "Version": "2012-10-17",
            "Statement": [statement.render() for statement in self.statements],
        }

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "assumed_by": list(self.assumed_by),
            "policy": self.policy_document(),
            "attached_policies": {p.name: p.document() for p in self.attached_policies},
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class ImmutableIdentity(Identity):
    """
    View over an identity whose grants are frozen. Further grants are
    dropped and reported as not added.
    """

    def __init__(self, inner: Identity) -> None:
        self._inner = inner

    @property
    def inner(self) -> Identity:
        """
        The identity this view wraps.
        """

        return self._inner

    @property
    def name(self) -> str:  # type: ignore[override]
        return self._inner.name

    @property
    def assumed_by(self) -> List[str]:  # type: ignore[override]
        return self._inner.assumed_by

    @property
    def statements(self) -> List[PolicyStatement]:  # type: ignore[override]
        return list(self._inner.statements)

    @property
    def attached_policies(self) -> List[Policy]:  # type: ignore[override]
        return list(self._inner.attached_policies)

    @property
    def mutable(self) -> bool:
        return False

    def add_to_policy(self, statement: PolicyStatement) -> bool:
        return False

    def attach_inline_policy(self, policy: Policy) -> None:
        return None

    def without_policy_updates(self) -> Identity:
        return self

    def policy_document(self) -> Dict[str, Any]:
        return self._inner.policy_document()
