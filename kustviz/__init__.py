"""kustviz -- Kustomize dependency graph discovery across Git repositories."""

__version__ = "0.1.0"
