from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from striche.model.canonical import HTTP_METHODS
from striche.model.errors import SpecLoadError

logger = logging.getLogger(__name__)

_COMPONENT_KINDS = ("schemas", "parameters", "responses", "securitySchemes")

# swagger 2.0 top-level key -> openapi 3 components key
_SWAGGER2_COMPONENTS = {
    "definitions": "schemas",
    "parameters": "parameters",
    "responses": "responses",
    "securityDefinitions": "securitySchemes",
}


@dataclass(frozen=True)
class NormalizedSpec:
    """
    Version-agnostic view of one OpenAPI / Swagger document.

    Only what the generator needs: paths (verb keys lower-cased), servers as
    [{"url": ...}], components (with securitySchemes) and info.
    """

    version: str
    info: dict[str, Any] = field(default_factory=dict)
    servers: list[dict[str, Any]] = field(default_factory=list)
    paths: dict[str, Any] = field(default_factory=dict)
    components: dict[str, Any] = field(default_factory=dict)
    security: list[Any] = field(default_factory=list)
    tags: list[Any] = field(default_factory=list)
    source_path: str = ""

    @property
    def title(self) -> Optional[str]:
        return self.info.get("title")

    @property
    def security_schemes(self) -> dict[str, Any]:
        return self.components.get("securitySchemes") or {}

    @classmethod
    def from_mapping(cls, doc: Mapping[str, Any]) -> "NormalizedSpec":
        """Wrap a mapping that already has the normalized shape (no conversion)."""
        return cls(
            version=str(doc.get("version") or doc.get("openapi") or doc.get("swagger") or "unknown"),
            info=dict(doc.get("info") or {}),
            servers=[dict(s) for s in (doc.get("servers") or []) if isinstance(s, Mapping)],
            paths=dict(doc.get("paths") or {}),
            components=dict(doc.get("components") or {}),
            security=list(doc.get("security") or []),
            tags=list(doc.get("tags") or []),
        )


def load_spec(spec_path: Path | str) -> NormalizedSpec:
    """Read a YAML or JSON spec file and normalize it."""
    path = Path(spec_path)
    if not path.is_file():
        raise SpecLoadError(f"Spec file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        raise SpecLoadError(f"Failed to parse spec {path}: {e}") from e

    if not isinstance(raw, dict):
        raise SpecLoadError(f"Spec {path} does not contain a mapping at the top level")

    spec = normalize_document(raw, source_path=str(path))
    logger.debug("Loaded %s (version=%s, paths=%d)", path, spec.version, len(spec.paths))
    return spec


def normalize_document(raw: Mapping[str, Any], source_path: str = "") -> NormalizedSpec:
    """
    Normalize a parsed swagger 2.x / openapi 3.x document.

    - swagger 2: host/basePath/schemes -> servers, definitions etc. -> components
    - openapi 3: servers and components copied
    - unknown: best effort, no servers, empty components
    """
    components: dict[str, Any] = {k: {} for k in _COMPONENT_KINDS}
    servers: list[dict[str, Any]] = []

    swagger = str(raw.get("swagger") or "")
    openapi = str(raw.get("openapi") or "")

    if swagger.startswith("2"):
        version = "2.0"
        host = raw.get("host") or ""
        base_path = raw.get("basePath") or ""
        if host:
            for scheme in raw.get("schemes") or ["https"]:
                servers.append({"url": f"{scheme}://{host}{base_path}"})
        for src_key, dst_key in _SWAGGER2_COMPONENTS.items():
            if raw.get(src_key):
                components[dst_key] = dict(raw[src_key])
    elif openapi.startswith("3"):
        version = openapi
        for s in raw.get("servers") or []:
            if isinstance(s, Mapping) and s.get("url"):
                servers.append({"url": str(s["url"])})
        raw_components = raw.get("components") or {}
        for kind in _COMPONENT_KINDS:
            components[kind] = dict(raw_components.get(kind) or {})
    else:
        version = "unknown"
        logger.debug("Unrecognized spec version in %s; normalizing best-effort", source_path or "<doc>")

    return NormalizedSpec(
        version=version,
        info=dict(raw.get("info") or {}),
        servers=servers,
        paths=_normalize_paths(raw.get("paths") or {}),
        components=components,
        security=list(raw.get("security") or []),
        tags=list(raw.get("tags") or []),
        source_path=source_path,
    )


def _normalize_paths(paths: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for raw_path, path_item in paths.items():
        item: dict[str, Any] = {}
        for key, value in (path_item or {}).items():
            low = str(key).lower()
            if low in HTTP_METHODS:
                op = dict(value or {})
                op.setdefault("parameters", [])
                item[low] = op
            else:
                # vendor extensions, summary, path-level parameters
                item[key] = value
        out[str(raw_path)] = item
    return out
