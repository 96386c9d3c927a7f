from pathlib import Path
import json
import textwrap

import pytest

from striche.model.errors import SpecLoadError
from striche.parser.spec_loader import load_spec, normalize_document


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


def test_load_openapi3_yaml(tmp_path: Path):
    f = tmp_path / "auth.yaml"
    write(
        f,
        """
        openapi: 3.0.3
        info:
          title: Auth
          version: "1"
        servers:
          - url: https://auth.internal
        components:
          securitySchemes:
            bearer:
              type: http
              scheme: bearer
        paths:
          /login:
            POST:
              tags: [auth]
              responses:
                "200":
                  description: ok
        """,
    )

    spec = load_spec(f)

    assert spec.version == "3.0.3"
    assert spec.title == "Auth"
    assert spec.servers == [{"url": "https://auth.internal"}]
    assert "bearer" in spec.security_schemes
    # verb keys are lower-cased, parameters defaulted
    assert list(spec.paths["/login"].keys()) == ["post"]
    assert spec.paths["/login"]["post"]["parameters"] == []
    assert spec.source_path == str(f)


def test_load_json_file(tmp_path: Path):
    f = tmp_path / "spec.json"
    f.write_text(json.dumps({"openapi": "3.1.0", "info": {"title": "J"}, "paths": {"/a": {"get": {}}}}), encoding="utf-8")

    spec = load_spec(f)
    assert spec.title == "J"
    assert spec.servers == []


def test_swagger2_host_and_security_definitions():
    spec = normalize_document(
        {
            "swagger": "2.0",
            "info": {"title": "Legacy"},
            "host": "api.example.com",
            "basePath": "/v1",
            "schemes": ["https", "http"],
            "securityDefinitions": {"key": {"type": "apiKey", "in": "header", "name": "X-Key"}},
            "definitions": {"User": {"type": "object"}},
            "paths": {"/users": {"get": {}, "x-service": "users"}},
        }
    )

    assert spec.version == "2.0"
    assert spec.servers == [{"url": "https://api.example.com/v1"}, {"url": "http://api.example.com/v1"}]
    assert spec.security_schemes["key"]["type"] == "apiKey"
    assert spec.components["schemas"] == {"User": {"type": "object"}}
    assert spec.paths["/users"]["x-service"] == "users"


def test_swagger2_without_host_has_no_servers():
    spec = normalize_document({"swagger": "2.0", "paths": {"/a": {"get": {}}}})
    assert spec.servers == []


def test_unknown_version_is_best_effort():
    spec = normalize_document({"paths": {"/a": {"get": {}}}})
    assert spec.version == "unknown"
    assert spec.security_schemes == {}
    assert "/a" in spec.paths


def test_missing_file_raises(tmp_path: Path):
    with pytest.raises(SpecLoadError):
        load_spec(tmp_path / "nope.yaml")


def test_non_mapping_document_raises(tmp_path: Path):
    f = tmp_path / "list.yaml"
    write(f, "- a\n- b\n")
    with pytest.raises(SpecLoadError):
        load_spec(f)
