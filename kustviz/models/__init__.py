"""Core data structures for kustviz."""

from kustviz.models.config import KustvizConfig
from kustviz.models.kustomize import (
    DEFAULT_REFS,
    KUSTOMIZATION_FILENAMES,
    ConfigurationUnit,
    DependencyEdge,
    KustomizeReference,
    NodeRole,
    Origin,
    Provider,
    ReferenceType,
    RemoteLocator,
    RepoInfo,
)

__all__ = [
    "DEFAULT_REFS",
    "KUSTOMIZATION_FILENAMES",
    "ConfigurationUnit",
    "DependencyEdge",
    "KustomizeReference",
    "KustvizConfig",
    "NodeRole",
    "Origin",
    "Provider",
    "ReferenceType",
    "RemoteLocator",
    "RepoInfo",
]
