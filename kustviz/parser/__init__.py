"""Reference parsing: relative vs remote classification and path joining."""

from kustviz.parser.reference import (
    canonical_url,
    is_plain_yaml,
    is_remote_reference,
    join_path,
    parse_reference,
    resolve_relative,
    strip_kustomization_file,
    strip_ref_prefix,
)

__all__ = [
    "canonical_url",
    "is_plain_yaml",
    "is_remote_reference",
    "join_path",
    "parse_reference",
    "resolve_relative",
    "strip_kustomization_file",
    "strip_ref_prefix",
]
