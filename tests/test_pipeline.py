from pathlib import Path
import json
import textwrap

import pytest

from striche.config import GeneratorConfig
from striche.model.errors import OutputExistsError, StructuralError, UpstreamResolutionError
from striche.orchestrator.pipeline import build_context_for_specs, run_generate


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


def write_specs(root: Path) -> list[Path]:
    auth = root / "specs" / "auth.yaml"
    payments = root / "specs" / "payments.yaml"
    write(
        auth,
        """
        openapi: 3.0.0
        info: {title: Auth}
        servers:
          - url: https://auth.internal
        paths:
          /login:
            post:
              tags: [auth]
              x-rate-limit: {requests: 10, period: 60}
        """,
    )
    write(
        payments,
        """
        swagger: "2.0"
        info: {title: Payments}
        paths:
          /payments/charge:
            x-service: payments
            post: {}
          /auth/whoami:
            x-service: auth
            get: {}
        """,
    )
    return [auth, payments]


CFG = GeneratorConfig()


def test_separate_mode_end_to_end(tmp_path: Path):
    specs = write_specs(tmp_path)

    res = build_context_for_specs(
        specs, mode="separate", service_map={"payments": "https://pay.internal"}, config=CFG
    )
    services = res.context["services"]

    assert list(services) == ["auth", "payments"]
    assert services["auth"]["upstream"] == "https://auth.internal"
    assert services["payments"]["upstream"] == "https://pay.internal"
    # /auth/whoami from the second spec lands on the first spec's auth service
    assert {r["path"] for r in services["auth"]["routes"]} == {"/login", "/auth/whoami"}


def test_unified_mode_requires_upstream_for_every_route(tmp_path: Path):
    specs = write_specs(tmp_path)

    with pytest.raises(UpstreamResolutionError) as exc:
        build_context_for_specs(specs, mode="unified", config=CFG)
    assert exc.value.service_name == "payments"


def test_run_generate_writes_tfvars(tmp_path: Path):
    specs = write_specs(tmp_path)
    out = tmp_path / "out"

    res = run_generate(specs, out, mode="unified", cli_upstream="https://x", config=CFG)

    assert res.mode == "unified"
    assert res.services == ["unified-gateway"]
    assert res.route_count == 3
    tfvars = json.loads((out / "terraform.tfvars.json").read_text(encoding="utf-8"))
    assert {r["upstream"] for r in tfvars["services"]["unified-gateway"]["routes"]} == {"https://x"}


def test_run_generate_refuses_existing_out_dir(tmp_path: Path):
    specs = write_specs(tmp_path)
    out = tmp_path / "out"
    out.mkdir()

    with pytest.raises(OutputExistsError):
        run_generate(specs, out, cli_upstream="https://x", config=CFG)

    res = run_generate(specs, out, cli_upstream="https://x", force=True, config=CFG)
    assert Path(res.out_dir, "terraform.tfvars.json").exists()


def test_failed_resolution_writes_nothing(tmp_path: Path):
    specs = write_specs(tmp_path)
    out = tmp_path / "out"

    with pytest.raises(UpstreamResolutionError):
        run_generate(specs, out, mode="unified", config=CFG)
    assert not out.exists()


def test_no_specs_is_structural_error():
    with pytest.raises(StructuralError):
        build_context_for_specs([], config=CFG)
