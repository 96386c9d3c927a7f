from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

from striche.adapters.terraform_aws.context_builder import RenderContext, build_render_context
from striche.config import GeneratorConfig
from striche.model.canonical import CanonicalModel, MergeMode
from striche.model.errors import OutputExistsError, StructuralError
from striche.model.mapper import map_openapi_to_canonical
from striche.model.merger import merge_models
from striche.parser.spec_loader import load_spec
from striche.render.renderer import render_all

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContextResult:
    model: CanonicalModel
    context: RenderContext


@dataclass(frozen=True)
class GenerateResult:
    out_dir: str
    mode: str  # "separate" | "unified"
    services: list[str]
    route_count: int
    written: list[str]
    context: dict[str, Any]


def build_context_for_specs(
    spec_paths: Sequence[Path],
    mode: Union[MergeMode, str] = MergeMode.UNIFIED,
    service_map: Optional[Mapping[str, str]] = None,
    cli_upstream: Optional[str] = None,
    config: Optional[GeneratorConfig] = None,
) -> ContextResult:
    """Load -> map (per spec, in order) -> merge -> resolve. No files are written."""
    if not spec_paths:
        raise StructuralError("No spec files provided")
    if config is None:
        config = GeneratorConfig.from_env()

    models: list[CanonicalModel] = []
    for p in spec_paths:
        logger.debug("Parsing spec: %s", p)
        spec = load_spec(p)
        models.append(map_openapi_to_canonical(spec, service_map=service_map))

    merged = merge_models(models, mode)
    context = build_render_context(merged, config=config, service_map=service_map, cli_upstream=cli_upstream)
    return ContextResult(model=merged, context=context)


def run_generate(
    spec_paths: Sequence[Path],
    out_dir: Path,
    mode: Union[MergeMode, str] = MergeMode.UNIFIED,
    service_map: Optional[Mapping[str, str]] = None,
    cli_upstream: Optional[str] = None,
    template_dir: Optional[Path] = None,
    force: bool = False,
    config: Optional[GeneratorConfig] = None,
) -> GenerateResult:
    out_dir = Path(out_dir).expanduser().resolve()
    mode = MergeMode(mode)
    logger.info(
        "Generate: specs=%s -> out=%s, templates=%s, mode=%s",
        ", ".join(str(p) for p in spec_paths),
        out_dir,
        template_dir or "-",
        mode.value,
    )

    # everything is resolved before the output tree is touched
    result = build_context_for_specs(
        spec_paths,
        mode=mode,
        service_map=service_map,
        cli_upstream=cli_upstream,
        config=config,
    )

    if out_dir.exists() and not force:
        raise OutputExistsError(f"Output directory {out_dir} already exists. Use --force to overwrite.")
    out_dir.mkdir(parents=True, exist_ok=True)

    written = render_all(result.context, out_dir, template_dir=template_dir)

    return GenerateResult(
        out_dir=str(out_dir),
        mode=mode.value,
        services=list(result.context["services"].keys()),
        route_count=len(result.model.routes),
        written=[str(p) for p in written],
        context=result.context,
    )
