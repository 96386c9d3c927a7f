from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Sequence, Union

from striche.model.canonical import (
    UPSTREAM_ROUTING,
    CanonicalModel,
    CanonicalRoute,
    CanonicalService,
    MergeMode,
)
from striche.model.errors import StructuralError

logger = logging.getLogger(__name__)

UNIFIED_SERVICE_NAME = "unified-gateway"
UNIFIED_SERVICE_ID = "svc-unified-gateway"
UNIFIED_ROUTE_SUFFIX = "-unified"


def merge_models(models: Sequence[CanonicalModel], mode: Union[MergeMode, str]) -> CanonicalModel:
    """
    Combine per-spec models into one.

    separate: services deduped by name (first wins), routes concatenated.
    unified:  one synthetic service; each route carries its original
              service name + upstream under the upstream-routing plugin.
    """
    if not models:
        raise StructuralError("No models to merge; at least one spec is required.")

    mode = MergeMode(mode)
    if mode is MergeMode.UNIFIED:
        merged = _merge_unified(models)
    else:
        merged = _merge_separate(models)

    logger.debug(
        "Merged %d model(s) in %s mode: %d services, %d routes",
        len(models),
        mode.value,
        len(merged.services),
        len(merged.routes),
    )
    return merged


def _merge_separate(models: Sequence[CanonicalModel]) -> CanonicalModel:
    seen: set[str] = set()
    services: list[CanonicalService] = []
    routes: list[CanonicalRoute] = []

    for m in models:
        for svc in m.services:
            if svc.name in seen:
                logger.debug("Service %r already defined by an earlier spec; keeping the first", svc.name)
                continue
            seen.add(svc.name)
            services.append(svc)
        routes.extend(m.routes)

    metadata = dict(models[0].metadata)
    metadata["mode"] = MergeMode.SEPARATE.value
    return CanonicalModel(services=tuple(services), routes=tuple(routes), metadata=metadata)


def _merge_unified(models: Sequence[CanonicalModel]) -> CanonicalModel:
    service_upstreams: dict[str, str] = {}
    original_services: list[str] = []
    routes: list[CanonicalRoute] = []

    for m in models:
        for svc in m.services:
            if svc.name not in service_upstreams:
                service_upstreams[svc.name] = svc.upstream_url
                original_services.append(svc.name)

        for r in m.routes:
            # owner is looked up in the route's own model, so each spec keeps its upstream
            owner = m.service_by_id(r.service_id)
            if owner is None:
                raise StructuralError(
                    f"Route {r.id} ({r.path}) references unknown service id {r.service_id!r}"
                )
            plugins: dict[str, Any] = dict(r.plugins)
            plugins[UPSTREAM_ROUTING] = {
                "originalServiceName": owner.name,
                "upstreamUrl": owner.upstream_url,
            }
            routes.append(
                replace(
                    r,
                    id=f"{r.id}{UNIFIED_ROUTE_SUFFIX}",
                    service_id=UNIFIED_SERVICE_ID,
                    plugins=plugins,
                )
            )

    unified = CanonicalService(
        id=UNIFIED_SERVICE_ID,
        name=UNIFIED_SERVICE_NAME,
        upstream_url="",
        description="Unified API Gateway",
    )
    metadata: dict[str, Any] = {
        "title": models[0].metadata.get("title"),
        "mode": MergeMode.UNIFIED.value,
        "serviceUpstreams": service_upstreams,
        "originalServices": original_services,
    }
    return CanonicalModel(services=(unified,), routes=tuple(routes), metadata=metadata)
