"""Collect the annotated methods of each @api class into a ServiceSpec."""

from __future__ import annotations

import ast
import logging
from typing import Iterable, Optional

from .errors import ServiceNotFound
from .invariants import validate_service
from .loader import Definition, find_service_classes
from .model import MethodSpec, ServiceSpec, TypeImport
from .signature_parser import build_method_spec

logger = logging.getLogger(__name__)


def build_service_spec(definition: Definition, node: ast.ClassDef) -> ServiceSpec:
    """Build the ServiceSpec for one class, in method declaration order.

    Methods without @api_handler are left out of the generated surface.
    """
    methods: list[MethodSpec] = []
    for item in node.body:
        if not isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        spec = build_method_spec(definition, item, service=node.name)
        if spec is None:
            logger.debug("skipping %s.%s: not an api_handler", node.name, item.name)
            continue
        methods.append(spec)

    if not methods:
        logger.warning("service %s declares no api_handler methods", node.name)

    docstring = ast.get_docstring(node) or ""
    return ServiceSpec(
        name=node.name,
        module=definition.module,
        methods=tuple(methods),
        imports=resolve_type_imports(definition, node.name, methods),
        summary=docstring.strip().splitlines()[0] if docstring.strip() else "",
    )


def build_services(
    definition: Definition,
    names: Optional[Iterable[str]] = None,
    strict: bool = False,
) -> list[ServiceSpec]:
    """Build and validate the ServiceSpecs of a definition module.

    ``names`` restricts the result to the given classes, in the given order.
    """
    classes = {node.name: node for node in find_service_classes(definition)}
    if not classes:
        raise ServiceNotFound(f"no @api class found in module {definition.module!r}")

    wanted = list(names) if names else list(classes)
    missing = [name for name in wanted if name not in classes]
    if missing:
        raise ServiceNotFound(
            f"@api class {missing[0]!r} not found in module {definition.module!r}; "
            f"available: {', '.join(classes)}"
        )

    services = [
        validate_service(build_service_spec(definition, classes[name]), strict=strict)
        for name in wanted
    ]
    logger.info(
        "built %d service(s) from %s: %s",
        len(services), definition.module, ", ".join(s.name for s in services),
    )
    return services


def resolve_type_imports(
    definition: Definition, service: str, methods: Iterable[MethodSpec]
) -> tuple[TypeImport, ...]:
    """Work out how generated code imports the names the service's types use.

    Names the definition imports are imported from the same place; anything
    else (classes, aliases, NewTypes defined in the module) comes from the
    definition module itself.
    """
    names = {service}
    for method in methods:
        names.update(method.payload_type.names)
        for param in method.params:
            names.update(param.type.names)

    imports: list[TypeImport] = []
    for name in sorted(names):
        ref = definition.imports.get(name)
        if ref is None:
            if name not in definition.top_level_names:
                logger.debug("%s is not defined in %s; importing it anyway", name, definition.module)
            imports.append(TypeImport(local=name, module=definition.module, name=name))
        elif ref.name is None:
            imports.append(TypeImport(local=name, module=ref.imported or ref.module))
        else:
            imports.append(TypeImport(local=name, module=ref.module, name=ref.name))
    return tuple(imports)
