from __future__ import annotations

import copy
import logging
from typing import Any, Mapping, Optional

from striche.config import GeneratorConfig
from striche.model.canonical import UPSTREAM_ROUTING, CanonicalModel, CanonicalRoute, CanonicalService, MergeMode
from striche.model.errors import UpstreamResolutionError

logger = logging.getLogger(__name__)

RenderContext = dict[str, Any]

_HOW_TO_FIX = (
    "provide one via --service-map '{\"%s\": \"https://...\"}', "
    "a global --upstream URL, or a servers[] entry in the spec"
)


def resolve_service_upstream(
    service: CanonicalService,
    service_map: Mapping[str, str],
    cli_upstream: Optional[str],
) -> str:
    """service-map entry > global --upstream > upstream seeded on the service."""
    upstream = service_map.get(service.name) or cli_upstream or service.upstream_url
    if not upstream:
        raise UpstreamResolutionError(
            f"No upstream resolved for service {service.name!r}; " + _HOW_TO_FIX % service.name,
            service_name=service.name,
        )
    return upstream


def resolve_route_upstream(
    original_service_name: str,
    path: str,
    captured_upstream: Optional[str],
    service_map: Mapping[str, str],
    cli_upstream: Optional[str],
) -> str:
    """Same precedence as resolve_service_upstream, keyed by the route's original service."""
    upstream = service_map.get(original_service_name) or cli_upstream or captured_upstream
    if not upstream:
        raise UpstreamResolutionError(
            f"No upstream resolved for route {path!r} of service {original_service_name!r}; "
            + _HOW_TO_FIX % original_service_name,
            service_name=original_service_name,
            path=path,
        )
    return upstream


def _route_entry(route: CanonicalRoute) -> dict[str, Any]:
    return {
        "id": route.id,
        "path": route.path,
        "methods": list(route.methods),
        "plugins": copy.deepcopy(route.plugins),
    }


def build_render_context(
    model: CanonicalModel,
    config: Optional[GeneratorConfig] = None,
    service_map: Optional[Mapping[str, str]] = None,
    cli_upstream: Optional[str] = None,
) -> RenderContext:
    """
    Resolve upstreams and shape the context consumed by the templates.

    Fails on the first unresolved upstream; a partial context is never returned.
    """
    if config is None:
        config = GeneratorConfig.from_env()
    overrides = dict(service_map or {})
    mode = MergeMode(model.metadata.get("mode") or MergeMode.SEPARATE.value)

    services: dict[str, dict[str, Any]] = {}
    by_id: dict[str, str] = {}
    for svc in model.services:
        if mode is MergeMode.UNIFIED:
            # per-route upstreams; the service one is only a placeholder
            upstream = svc.upstream_url or ""
        else:
            upstream = resolve_service_upstream(svc, overrides, cli_upstream)
        services[svc.name] = {"upstream": upstream, "routes": []}
        by_id[svc.id] = svc.name

    for r in model.routes:
        name = by_id.get(r.service_id)
        if name is None:
            logger.warning("Route %s (%s) references unknown service %s; skipped", r.id, r.path, r.service_id)
            continue
        entry = _route_entry(r)
        if mode is MergeMode.UNIFIED:
            routing = r.plugins.get(UPSTREAM_ROUTING) or {}
            entry["upstream"] = resolve_route_upstream(
                original_service_name=str(routing.get("originalServiceName") or name),
                path=r.path,
                captured_upstream=routing.get("upstreamUrl"),
                service_map=overrides,
                cli_upstream=cli_upstream,
            )
        services[name]["routes"].append(entry)

    logger.debug("Built %s render context for %d services", mode.value, len(services))
    return {
        "region": config.region,
        "aws_region": config.region,
        "mode": mode.value,
        "services": services,
        "metadata": copy.deepcopy(model.metadata),
        "default_rate_limit_rps": config.default_rate_limit_rps,
        "default_rate_limit_burst": config.default_rate_limit_burst,
    }
