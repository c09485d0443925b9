"""Render templates and write generated output.

Takes ServiceSpecs from the service builder and produces, per service,
<output_dir>/<service>_server.py and <output_dir>/<service>_client.py.
Everything is rendered before anything is written, so a failure leaves the
output directory untouched.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Optional

import jinja2

from .config import GeneratorConfig
from .context_builder import build_client_context, build_server_context
from .loader import load_definition
from .model import ServiceSpec
from .naming import module_name
from .service_builder import build_services

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"


def _environment() -> jinja2.Environment:
    return jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=jinja2.StrictUndefined,
    )


def _render(template_name: str, context: dict[str, Any]) -> str:
    return _environment().get_template(template_name).render(**context)


def render_server(service: ServiceSpec) -> str:
    """Source of the server binding module for *service*."""
    return _render("server.py.j2", build_server_context(service))


def render_client(service: ServiceSpec) -> str:
    """Source of the client binding module for *service*."""
    return _render("client.py.j2", build_client_context(service))


def render_services(
    services: Iterable[ServiceSpec],
    config: GeneratorConfig,
    server: bool = True,
    client: bool = True,
) -> dict[str, str]:
    """Render every artifact, keyed by file name."""
    outputs: dict[str, str] = {}
    for service in services:
        if server:
            outputs[f"{module_name(service.name, config.server_suffix)}.py"] = render_server(service)
        if client:
            outputs[f"{module_name(service.name, config.client_suffix)}.py"] = render_client(service)
    return outputs


def write_outputs(outputs: dict[str, str], output_dir: Path, write_init: bool = True) -> list[Path]:
    """Write rendered modules to *output_dir*; returns the written paths."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    if write_init:
        init = output_dir / "__init__.py"
        if not init.exists():
            init.write_text('"""Generated by apibind."""\n')
            written.append(init)
    for name, source in outputs.items():
        output_path = output_dir / name
        output_path.write_text(source)
        logger.debug("wrote %s (%d bytes)", output_path, len(source))
        written.append(output_path)
    return written


def generate(
    services: Iterable[ServiceSpec],
    config: GeneratorConfig,
    server: bool = True,
    client: bool = True,
) -> list[Path]:
    """Render and write bindings for *services*."""
    outputs = render_services(services, config, server=server, client=client)
    written = write_outputs(outputs, config.output_dir, write_init=config.write_init)
    logger.info("generated %d module(s) in %s", len(outputs), config.output_dir)
    return written


def generate_module(
    module: str,
    config: Optional[GeneratorConfig] = None,
    services: Optional[Iterable[str]] = None,
    source: Optional[Path] = None,
    server: bool = True,
    client: bool = True,
) -> list[Path]:
    """Load *module*, build its services and write their bindings."""
    config = config or GeneratorConfig.from_env()
    definition = load_definition(module, path=source)
    specs = build_services(definition, services, strict=config.strict_path_names)
    return generate(specs, config, server=server, client=client)
