from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Mapping, Optional, Union
from urllib.parse import urlsplit

from striche.model.canonical import (
    HTTP_METHODS,
    JWT,
    KEY_AUTH,
    RATE_LIMITING,
    CanonicalModel,
    CanonicalRoute,
    CanonicalService,
    MergeMode,
)
from striche.model.errors import StructuralError
from striche.model.naming import route_id, service_id, tag_slug
from striche.parser.spec_loader import NormalizedSpec

logger = logging.getLogger(__name__)

SERVICE_EXTENSION = "x-service"
RATE_LIMIT_EXTENSION = "x-rate-limit"
FALLBACK_SERVICE_NAME = "root"

SpecLike = Union[NormalizedSpec, Mapping[str, Any]]
ServiceNameRule = Callable[[str, Mapping[str, Any], NormalizedSpec], Optional[str]]


def _operations(path_item: Mapping[str, Any]) -> list[tuple[str, Mapping[str, Any]]]:
    # (lower-cased verb, operation) in declaration order
    out = []
    for key, op in path_item.items():
        low = str(key).lower()
        if low in HTTP_METHODS and isinstance(op, Mapping):
            out.append((low, op))
    return out


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ----------------------------
# Service-name rules (first non-empty result wins)
# ----------------------------


def service_from_path_extension(raw_path: str, path_item: Mapping[str, Any], spec: NormalizedSpec) -> Optional[str]:
    return _clean(path_item.get(SERVICE_EXTENSION))


def service_from_operation_extension(raw_path: str, path_item: Mapping[str, Any], spec: NormalizedSpec) -> Optional[str]:
    for _, op in _operations(path_item):
        name = _clean(op.get(SERVICE_EXTENSION))
        if name:
            return name
    return None


def service_from_server_url(raw_path: str, path_item: Mapping[str, Any], spec: NormalizedSpec) -> Optional[str]:
    if not spec.servers:
        return None
    url = str(spec.servers[0].get("url") or "")
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    for seg in parts.path.split("/"):
        if seg:
            return seg
    return None


def service_from_tags(raw_path: str, path_item: Mapping[str, Any], spec: NormalizedSpec) -> Optional[str]:
    for _, op in _operations(path_item):
        tags = op.get("tags") or []
        if tags:
            return _clean(tag_slug(str(tags[0])))
    return None


def service_from_path_segment(raw_path: str, path_item: Mapping[str, Any], spec: NormalizedSpec) -> Optional[str]:
    for seg in raw_path.split("/"):
        if seg:
            return seg
    return None


SERVICE_NAME_RULES: tuple[ServiceNameRule, ...] = (
    service_from_path_extension,
    service_from_operation_extension,
    service_from_server_url,
    service_from_tags,
    service_from_path_segment,
)


def resolve_service_name(
    raw_path: str,
    path_item: Mapping[str, Any],
    spec: NormalizedSpec,
    rules: tuple[ServiceNameRule, ...] = SERVICE_NAME_RULES,
) -> str:
    for rule in rules:
        name = rule(raw_path, path_item, spec)
        if name:
            return name
    return FALLBACK_SERVICE_NAME


# ----------------------------
# Route plugins
# ----------------------------


def security_plugins(op: Mapping[str, Any], security_schemes: Mapping[str, Any]) -> dict[str, Any]:
    """Map the first scheme of the first security requirement to an auth plugin."""
    requirements = op.get("security") or []
    if not requirements or not isinstance(requirements[0], Mapping) or not requirements[0]:
        return {}

    scheme_name = next(iter(requirements[0]))
    scheme = security_schemes.get(scheme_name)
    if not isinstance(scheme, Mapping):
        logger.debug("Security scheme %r is not defined; route left unannotated", scheme_name)
        return {}

    scheme_type = scheme.get("type")
    if scheme_type == "apiKey":
        payload: dict[str, Any] = {"scheme": scheme_name}
        if scheme.get("in"):
            payload["in"] = scheme["in"]
        if scheme.get("name"):
            payload["name"] = scheme["name"]
        return {KEY_AUTH: payload}
    if scheme_type == "http" and str(scheme.get("scheme") or "").lower() == "bearer":
        return {JWT: {"scheme": scheme_name}}
    if scheme_type in ("oauth2", "openIdConnect"):
        return {JWT: {"scheme": scheme_name}}

    logger.debug("Security scheme %r of type %r has no plugin mapping", scheme_name, scheme_type)
    return {}


def route_plugins(op: Mapping[str, Any], security_schemes: Mapping[str, Any]) -> dict[str, Any]:
    plugins = security_plugins(op, security_schemes)
    if op.get(RATE_LIMIT_EXTENSION):
        # opaque payload, copied as-is
        plugins[RATE_LIMITING] = copy.deepcopy(op[RATE_LIMIT_EXTENSION])
    return plugins


# ----------------------------
# Mapping
# ----------------------------


def _as_spec(doc: SpecLike) -> NormalizedSpec:
    if isinstance(doc, NormalizedSpec):
        return doc
    return NormalizedSpec.from_mapping(doc)


def _seed_upstream(name: str, spec: NormalizedSpec, service_map: Mapping[str, str]) -> str:
    if service_map.get(name):
        return service_map[name]
    if spec.servers and spec.servers[0].get("url"):
        return str(spec.servers[0]["url"])
    return ""


def map_openapi_to_canonical(
    doc: SpecLike,
    service_map: Optional[Mapping[str, str]] = None,
) -> CanonicalModel:
    """
    Map one normalized spec to a CanonicalModel.

    Services are created in first-encounter order (one per distinct service
    name), then routes (one per HTTP verb) referencing them by id.
    """
    spec = _as_spec(doc)
    if not spec.paths:
        raise StructuralError(
            f"Spec {spec.source_path or spec.title or '<document>'} contains no paths; nothing to map."
        )
    overrides = dict(service_map or {})

    # pass 1: path -> service name
    assignments: list[tuple[str, Mapping[str, Any], str]] = []
    for raw_path, path_item in spec.paths.items():
        item = path_item if isinstance(path_item, Mapping) else {}
        assignments.append((raw_path, item, resolve_service_name(raw_path, item, spec)))

    # pass 2: services, deterministic first-encounter order
    seen: set[str] = set()
    services: list[CanonicalService] = []
    for _, _, name in assignments:
        if name in seen:
            continue
        seen.add(name)
        services.append(
            CanonicalService(
                id=service_id(name),
                name=name,
                upstream_url=_seed_upstream(name, spec, overrides),
                description=spec.title,
            )
        )

    # ids are slugs, so distinct names can still share one
    owner_by_id: dict[str, str] = {}
    for svc in services:
        other = owner_by_id.setdefault(svc.id, svc.name)
        if other != svc.name:
            raise StructuralError(
                f"Service names {other!r} and {svc.name!r} both map to id {svc.id!r}; "
                "rename one of them (x-service or tags) so routes stay with one service."
            )

    # pass 3: routes
    routes: list[CanonicalRoute] = []
    for raw_path, item, name in assignments:
        for method, op in _operations(item):
            routes.append(
                CanonicalRoute(
                    id=route_id(name, raw_path, method),
                    service_id=service_id(name),
                    path=raw_path,
                    methods=(method.upper(),),
                    plugins=route_plugins(op, spec.security_schemes),
                )
            )

    logger.debug("Mapped %d services and %d routes", len(services), len(routes))
    return CanonicalModel(
        services=tuple(services),
        routes=tuple(routes),
        metadata={"title": spec.title, "mode": MergeMode.SEPARATE.value},
    )
