"""Turn already-read local kustomization files into configuration units.

Directory walking stays with the caller; this module only receives a
mapping of relative file path to text and produces ``origin=local`` units
that feed :class:`kustviz.graph.DependencyGraphBuilder` directly.
"""

from __future__ import annotations

from collections.abc import Mapping

import yaml

from kustviz.models.kustomize import KUSTOMIZATION_FILENAMES, ConfigurationUnit, NodeRole, Origin
from kustviz.observability.logging import get_logger
from kustviz.parser.reference import join_path

_log = get_logger("crawler.local")


def units_from_local_files(files: Mapping[str, str]) -> list[ConfigurationUnit]:
    """Build one unit per kustomization file in *files*.

    Units sit at their directory path (``.`` for the top level) and come back
    shallowest first, so the top-level kustomization, when present, is the
    graph root.  A directory holding both ``kustomization.yaml`` and
    ``kustomization.yml`` uses the ``.yaml`` file.  Files whose YAML does not
    parse to a mapping are skipped with a warning.
    """
    by_dir: dict[str, tuple[int, str, str]] = {}
    for file_path, text in files.items():
        head, _, name = file_path.replace("\\", "/").rpartition("/")
        if name.lower() not in KUSTOMIZATION_FILENAMES:
            continue
        directory = join_path("", head)
        rank = KUSTOMIZATION_FILENAMES.index(name.lower())
        if directory in by_dir and by_dir[directory][0] <= rank:
            continue
        by_dir[directory] = (rank, file_path, text)

    units: list[ConfigurationUnit] = []
    for directory in sorted(by_dir, key=_depth_order):
        _, file_path, text = by_dir[directory]
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            _log.warning("local_file_skipped", file=file_path, reason=f"invalid YAML: {exc}")
            continue
        if document is None:
            document = {}
        if not isinstance(document, dict):
            _log.warning("local_file_skipped", file=file_path, reason="not a mapping")
            continue
        units.append(
            ConfigurationUnit(
                id=f"local-{len(units) + 1}",
                path=directory,
                role=NodeRole.RESOURCE,
                raw_content=document,
                origin=Origin.LOCAL,
            )
        )

    _log.debug("local_units_built", count=len(units))
    return units


def _depth_order(directory: str) -> tuple[int, str]:
    if directory == ".":
        return (0, "")
    return (directory.count("/") + 1, directory)
