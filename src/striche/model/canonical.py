from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

# plugin capability names understood by the templates
KEY_AUTH = "key-auth"
JWT = "jwt"
RATE_LIMITING = "rate-limiting"
UPSTREAM_ROUTING = "upstream-routing"

HTTP_METHODS = ("get", "post", "put", "patch", "delete", "options", "head")


class MergeMode(str, Enum):
    SEPARATE = "separate"
    UNIFIED = "unified"


@dataclass(frozen=True)
class CanonicalRoute:
    """
    One HTTP operation (one verb on one path template).

    service_id is a back-reference to the owning CanonicalService.
    """

    id: str
    service_id: str
    path: str
    methods: tuple[str, ...]
    plugins: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "serviceId": self.service_id,
            "path": self.path,
            "methods": list(self.methods),
            "plugins": copy.deepcopy(self.plugins),
        }


@dataclass(frozen=True)
class CanonicalService:
    id: str
    name: str
    upstream_url: str = ""
    description: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "upstreamUrl": self.upstream_url,
            "description": self.description,
        }


@dataclass(frozen=True)
class CanonicalModel:
    """
    Version-agnostic pivot between input specs and generated infrastructure.

    Invariants:
      - service names are unique
      - every route references a service by id
    """

    services: tuple[CanonicalService, ...] = ()
    routes: tuple[CanonicalRoute, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    def service_by_id(self, sid: str) -> Optional[CanonicalService]:
        for s in self.services:
            if s.id == sid:
                return s
        return None

    def service_by_name(self, name: str) -> Optional[CanonicalService]:
        for s in self.services:
            if s.name == name:
                return s
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "services": [s.to_dict() for s in self.services],
            "routes": [r.to_dict() for r in self.routes],
            "metadata": copy.deepcopy(self.metadata),
        }
