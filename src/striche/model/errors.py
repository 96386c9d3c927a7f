from __future__ import annotations

from typing import Optional


class StricheError(Exception):
    """Base class for every error raised by the generator."""


class StructuralError(StricheError, ValueError):
    """Input is structurally unusable (no paths, nothing to merge, dangling refs)."""


class ConfigurationError(StricheError, ValueError):
    """Caller-supplied configuration is invalid or incomplete."""


class UpstreamResolutionError(ConfigurationError):
    """No upstream could be resolved for a service (separate) or a route (unified)."""

    def __init__(self, message: str, service_name: str, path: Optional[str] = None):
        super().__init__(message)
        self.service_name = service_name
        self.path = path


class SpecLoadError(StricheError):
    """A spec file could not be read or parsed."""


class OutputExistsError(StricheError):
    """Output directory already exists and overwriting was not requested."""
