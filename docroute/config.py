"""
Config - documentation and server settings from the environment.

Load order (later overrides earlier):
1. Dataclass defaults
2. ``.env.<mode>`` file (mode from ``DOCROUTE_ENV``, default ``dev``)
3. Process environment variables with the ``DOCROUTE_`` prefix
4. Manual overrides
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set

from dotenv import dotenv_values

from .controller.openapi import OpenAPIConfig
from .faults import ConfigFault

logger = logging.getLogger("docroute.config")

DEFAULT_ENV_PREFIX = "DOCROUTE_"


@dataclass
class DocsSettings:
    """Settings for the generated document, docs endpoints and server."""
    title: str = "docroute API"
    version: str = "1.0.0"
    description: str = ""
    server_url: str = ""
    docs_path: str = "/api-docs"
    json_path: str = "/api-docs.json"
    global_security: bool = False
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    env: str = "dev"
    servers: List[Dict[str, str]] = field(default_factory=list)
    # names of fields set from a file, the environment or overrides
    explicit: Set[str] = field(default_factory=set, repr=False, compare=False)

    @classmethod
    def from_env(
        cls,
        env_prefix: str = DEFAULT_ENV_PREFIX,
        env_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "DocsSettings":
        """
        Build settings from ``.env`` files and environment variables.

        Args:
            env_prefix: Prefix for environment variables
            env_file: Explicit .env file; defaults to ``.env.<mode>``
            environ: Environment mapping (defaults to ``os.environ``)
            overrides: Manual overrides (highest precedence)

        Raises:
            ConfigFault: A value cannot be converted to its field type
        """
        environ = dict(os.environ if environ is None else environ)
        mode = environ.get(f"{env_prefix}ENV", "dev")

        path = Path(env_file) if env_file else Path(f".env.{mode}")
        values: Dict[str, Optional[str]] = {}
        if path.exists():
            values.update(dotenv_values(path))
            logger.info("Loaded environment file %s", path)
        elif env_file:
            logger.warning("Environment file %s not found; using defaults", path)
        else:
            logger.debug("No %s file; using environment only", path)

        values.update(environ)

        settings = cls(env=mode)
        for f in fields(cls):
            if f.name in ("env", "servers", "explicit"):
                continue
            raw = values.get(f"{env_prefix}{f.name.upper()}")
            if raw is None:
                continue
            setattr(settings, f.name, _coerce(f"{env_prefix}{f.name.upper()}", raw, f.type))
            settings.explicit.add(f.name)

        for key, value in (overrides or {}).items():
            if hasattr(settings, key) and key != "explicit":
                setattr(settings, key, value)
                settings.explicit.add(key)

        if settings.server_url and not settings.servers:
            settings.servers = [{"url": settings.server_url, "description": f"{settings.env} server"}]

        return settings

    def to_openapi_config(self) -> OpenAPIConfig:
        return OpenAPIConfig(
            title=self.title,
            version=self.version,
            description=self.description,
            servers=list(self.servers),
            docs_path=self.docs_path,
            openapi_json_path=self.json_path,
            global_security=self.global_security,
        )

    def apply_to(self, config: OpenAPIConfig) -> OpenAPIConfig:
        """
        Layer the explicitly set settings over an existing config.

        Fields left at their defaults keep the value from ``config``, so an
        app spec's own title survives an environment that only sets the
        port.
        """
        changes: Dict[str, Any] = {}
        for name, target in _OPENAPI_FIELDS.items():
            if name in self.explicit:
                changes[target] = getattr(self, name)
        if self.servers and ({"servers", "server_url"} & self.explicit):
            changes["servers"] = list(self.servers)
        if changes:
            logger.debug("Settings override OpenAPI config: %s", ", ".join(sorted(changes)))
        return replace(config, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("explicit")
        return data


_OPENAPI_FIELDS = {
    "title": "title",
    "version": "version",
    "description": "description",
    "docs_path": "docs_path",
    "json_path": "openapi_json_path",
    "global_security": "global_security",
}


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _coerce(key: str, raw: str, annotation: Any) -> Any:
    # annotations are strings under `from __future__ import annotations`
    kind = annotation if isinstance(annotation, str) else getattr(annotation, "__name__", str(annotation))
    if kind == "int":
        try:
            return int(raw)
        except ValueError:
            raise ConfigFault(key, raw, "expected an integer") from None
    if kind == "bool":
        lowered = raw.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ConfigFault(key, raw, "expected a boolean")
    return raw
