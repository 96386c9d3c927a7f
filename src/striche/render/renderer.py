from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from striche.config import DEFAULT_REGION
from striche.model.naming import route_resource_name, slug

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".j2"
ROOT_TEMPLATES = "root"
SERVICE_MODULE_TEMPLATES = Path("modules") / "service"
TFVARS_FILENAME = "terraform.tfvars.json"


def resolve_template_dir(explicit: Optional[Path] = None, platform: Optional[str] = None) -> Optional[Path]:
    """
    explicit dir > ./templates in cwd. A <dir>/<platform> sub-directory wins when present.
    Returns None when nothing usable exists.
    """
    if explicit is not None:
        base = Path(explicit).expanduser().resolve()
    else:
        base = (Path.cwd() / "templates").resolve()
        if not base.is_dir():
            return None

    if platform and (base / platform).is_dir():
        logger.info("Using platform-specific templates: %s", base / platform)
        return base / platform
    return base


def make_environment(template_dir: Path) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["keys"] = lambda obj: list((obj or {}).keys())
    env.filters["slug"] = slug
    env.filters["resource_name"] = route_resource_name
    env.filters["tojson"] = lambda obj: json.dumps(obj, sort_keys=True)
    return env


def _render_dir(env: Environment, template_dir: Path, rel_dir: Path, out_dir: Path, context: Mapping[str, Any]) -> list[Path]:
    src = template_dir / rel_dir
    if not src.is_dir():
        logger.warning("Template directory not found: %s", src)
        return []

    written: list[Path] = []
    out_dir.mkdir(parents=True, exist_ok=True)
    for tpl in sorted(src.iterdir()):
        if not tpl.is_file() or tpl.suffix != TEMPLATE_SUFFIX:
            continue
        # jinja loader names are always "/"-separated
        name = (rel_dir / tpl.name).as_posix()
        text = env.get_template(name).render(**context)
        target = out_dir / tpl.name[: -len(TEMPLATE_SUFFIX)]
        target.write_text(text, encoding="utf-8")
        written.append(target)
    return written


def write_tfvars(context: Mapping[str, Any], out_dir: Path) -> Path:
    tfvars = {
        "services": context.get("services", {}),
        "aws_region": context.get("region") or DEFAULT_REGION,
        "default_rate_limit_rps": context.get("default_rate_limit_rps"),
        "default_rate_limit_burst": context.get("default_rate_limit_burst"),
    }
    out_dir.mkdir(parents=True, exist_ok=True)
    target = out_dir / TFVARS_FILENAME
    target.write_text(json.dumps(tfvars, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return target


def render_all(context: Mapping[str, Any], out_dir: Path, template_dir: Optional[Path] = None) -> list[Path]:
    """
    Render root/*.j2 into out_dir and modules/service/*.j2 into
    out_dir/modules/service, then write terraform.tfvars.json.
    """
    out_dir = Path(out_dir)
    written: list[Path] = []

    if template_dir is None:
        logger.warning("No template directory found; writing %s only", TFVARS_FILENAME)
    else:
        template_dir = Path(template_dir)
        env = make_environment(template_dir)
        written += _render_dir(env, template_dir, Path(ROOT_TEMPLATES), out_dir, context)
        written += _render_dir(env, template_dir, SERVICE_MODULE_TEMPLATES, out_dir / SERVICE_MODULE_TEMPLATES, context)

    written.append(write_tfvars(context, out_dir))
    logger.info("Rendered %d file(s) into %s", len(written), out_dir)
    return written
