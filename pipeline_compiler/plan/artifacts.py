"""
Maps file sets onto named pipeline artifacts.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Dict, Set, Tuple

from pipeline_compiler.schema.models import FileSet

_INVALID_ARTIFACT_CHARS = re.compile(r"[^A-Za-z0-9_]")
# Imposed by the delivery service
MAX_ARTIFACT_NAME_LENGTH = 100


@dataclass(frozen=True)
class PipelineArtifact:
    name: str

    def at_path(self, path: str) -> str:
        return f"{self.name}::{path}"


def sanitize_artifact_name(name: str) -> str:
    sanitized = _INVALID_ARTIFACT_CHARS.sub("_", name)
    if len(sanitized) > MAX_ARTIFACT_NAME_LENGTH:
        fingerprint = hashlib.sha256(sanitized.encode("utf-8")).hexdigest()[:8]
        sanitized = sanitized[: MAX_ARTIFACT_NAME_LENGTH - len(fingerprint)] + fingerprint
    return sanitized


class ArtifactMap:
    """
    One artifact per file set, with names unique across the pipeline.
    """

    def __init__(self) -> None:
        self._artifacts: Dict[Tuple[str | None, str], PipelineArtifact] = {}
        self._used_names: Set[str] = set()

    def to_pipeline(self, file_set: FileSet) -> PipelineArtifact:
        key = (file_set.producer, file_set.id)
        artifact = self._artifacts.get(key)
        if artifact is None:
            base = f"{file_set.producer}.{file_set.id}" if file_set.producer else file_set.id
            artifact = PipelineArtifact(name=self._unique_name(base))
            self._used_names.add(artifact.name)
            self._artifacts[key] = artifact
        return artifact

    def _unique_name(self, base: str) -> str:
        base = sanitize_artifact_name(base)
        name = base
        i = 1
        while name in self._used_names:
            i += 1
            name = f"{base}{i}"
        return name

    def __len__(self) -> int:
        return len(self._artifacts)
