from __future__ import annotations

import json
import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from striche.model.errors import ConfigurationError

DEFAULT_REGION = "us-east-1"
DEFAULT_RATE_LIMIT_RPS = 100
DEFAULT_RATE_LIMIT_BURST = 200

ENV_REGION = "AWS_REGION"
ENV_RATE_LIMIT_RPS = "DEFAULT_RATE_LIMIT_RPS"
ENV_RATE_LIMIT_BURST = "DEFAULT_RATE_LIMIT_BURST"


class GeneratorConfig(BaseModel):
    """Process-wide defaults surfaced to templates."""

    model_config = ConfigDict(frozen=True)

    region: str = DEFAULT_REGION
    default_rate_limit_rps: int = Field(DEFAULT_RATE_LIMIT_RPS, gt=0)
    default_rate_limit_burst: int = Field(DEFAULT_RATE_LIMIT_BURST, gt=0)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GeneratorConfig":
        env = os.environ if environ is None else environ
        values: dict[str, str] = {}
        if env.get(ENV_REGION):
            values["region"] = env[ENV_REGION]
        if env.get(ENV_RATE_LIMIT_RPS):
            values["default_rate_limit_rps"] = env[ENV_RATE_LIMIT_RPS]
        if env.get(ENV_RATE_LIMIT_BURST):
            values["default_rate_limit_burst"] = env[ENV_RATE_LIMIT_BURST]
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid generator configuration from environment: {e}") from e


def parse_service_map(text: Optional[str]) -> dict[str, str]:
    """Parse a JSON object of service-name -> upstream URL."""
    if not text:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"--service-map is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("--service-map must be a JSON object of service name -> upstream URL")
    bad = sorted(k for k, v in data.items() if not isinstance(v, str) or not v.strip())
    if bad:
        raise ConfigurationError(f"--service-map values must be non-empty URL strings (bad keys: {', '.join(bad)})")
    return {str(k): v.strip() for k, v in data.items()}
