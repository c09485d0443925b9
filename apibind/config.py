"""Generator configuration.

Defaults can be overridden from the environment:
  APIBIND_OUTPUT_DIR    directory generated modules are written to
  APIBIND_STRICT_PATHS  "1"/"true"/"yes" to require placeholder names to
                        match Path-role parameter names
Explicit keyword overrides (e.g. from the CLI) win over the environment.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

_TRUTHY = {"1", "true", "yes", "on"}


class GeneratorConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    output_dir: Path = Path("generated")
    strict_path_names: bool = False
    server_suffix: str = "_server"
    client_suffix: str = "_client"
    write_init: bool = True

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any
    ) -> GeneratorConfig:
        """Build a config from APIBIND_* variables plus explicit overrides."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        if env.get("APIBIND_OUTPUT_DIR"):
            values["output_dir"] = Path(env["APIBIND_OUTPUT_DIR"])
        if "APIBIND_STRICT_PATHS" in env:
            values["strict_path_names"] = env["APIBIND_STRICT_PATHS"].strip().lower() in _TRUTHY
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
