from __future__ import annotations

import hashlib
import re

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_NON_ALNUM_ANY_CASE = re.compile(r"[^a-zA-Z0-9]+")
_WHITESPACE = re.compile(r"\s+")
_MULTI_DASH = re.compile(r"-{2,}")

ROUTE_ID_PREFIX = "r-"
SERVICE_ID_PREFIX = "svc-"
ROUTE_HASH_LEN = 8


def slug(text: str) -> str:
    # "Payments API" -> "payments-api"
    return _NON_ALNUM.sub("-", (text or "").lower()).strip("-")


def tag_slug(tag: str) -> str:
    # lower-case + collapse whitespace; other characters are kept
    return _WHITESPACE.sub("-", (tag or "").strip().lower())


def short_hash(text: str, n: int = ROUTE_HASH_LEN) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:n]


def route_id(service_name: str, path: str, method: str) -> str:
    """
    Stable route identifier: r-<8 hex of sha1("service|path|method")>.

    Same inputs always give the same id so regenerated infrastructure keeps
    its resource names. No collision detection is done.
    """
    return f"{ROUTE_ID_PREFIX}{short_hash(f'{service_name}|{path}|{method}')}"


def service_id(service_name: str) -> str:
    return f"{SERVICE_ID_PREFIX}{slug(service_name)}"


def route_resource_name(path: str, method: str) -> str:
    # /users/{id} + GET -> users-id-get
    p = path.replace("{", "").replace("}", "")
    p = _NON_ALNUM_ANY_CASE.sub("-", p).strip("-")
    name = f"{p}-{method.lower()}" if p else method.lower()
    return _MULTI_DASH.sub("-", name)
