"""Locate and parse service definition modules.

Definitions are read as source and parsed with ``ast``; nothing in them is
imported or executed. The loader also records the module's top-level imports,
so marker aliases (``from apibind import Path as PathParam``) resolve, and so
generated code can import the same type names the definition uses.
"""

from __future__ import annotations

import ast
import importlib.util
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import DefinitionNotFound, InvalidDefinition

logger = logging.getLogger(__name__)

# Modules whose exports are recognised as definition markers
MARKER_MODULES = frozenset({"apibind", "apibind.markers", "apibind.result"})

MARKER_NAMES = frozenset(
    {"api", "api_handler", "Body", "Path", "Query", "ApiResult", "Ok", "NotFound", "InternalError"}
)


@dataclass(frozen=True)
class ImportRef:
    """One name bound by a top-level import statement."""

    module: str
    name: Optional[str] = None  # None for ``import module [as alias]``
    # Dotted module named by ``import a.b`` when only ``a`` is bound
    imported: Optional[str] = None


@dataclass
class Definition:
    """A parsed definition module."""

    module: str
    tree: ast.Module
    path: Optional[Path] = None
    imports: dict[str, ImportRef] = field(default_factory=dict)
    top_level_names: set[str] = field(default_factory=set)


def find_source(module: str) -> Path:
    """Return the source file of *module* without executing it."""
    try:
        spec = importlib.util.find_spec(module)
    except (ImportError, ValueError) as exc:
        raise DefinitionNotFound(f"cannot locate module {module!r}: {exc}") from exc
    if spec is None or not spec.origin or not spec.origin.endswith(".py"):
        raise DefinitionNotFound(f"no Python source found for module {module!r}")
    return Path(spec.origin)


def load_definition(module: str, path: Optional[Path] = None) -> Definition:
    """Read and parse the definition module from disk."""
    source_file = path or find_source(module)
    try:
        source = source_file.read_text(encoding="utf-8")
    except OSError as exc:
        raise DefinitionNotFound(f"cannot read {source_file}: {exc}") from exc
    logger.debug("loading definition %s from %s", module, source_file)
    return parse_definition(source, module, path=source_file)


def parse_definition(source: str, module: str, path: Optional[Path] = None) -> Definition:
    """Parse definition source that is importable as *module*."""
    try:
        tree = ast.parse(source, filename=str(path or module))
    except SyntaxError as exc:
        raise InvalidDefinition(f"syntax error: {exc.msg}", lineno=exc.lineno) from exc

    definition = Definition(module=module, tree=tree, path=path)
    for node in tree.body:
        if isinstance(node, ast.Import):
            for alias in node.names:
                if alias.asname:
                    definition.imports[alias.asname] = ImportRef(module=alias.name)
                else:
                    head = alias.name.split(".")[0]
                    imported = alias.name if alias.name != head else None
                    definition.imports[head] = ImportRef(module=head, imported=imported)
        elif isinstance(node, ast.ImportFrom):
            source_module = _absolute_module(module, node.module, node.level)
            for alias in node.names:
                if alias.name == "*":
                    continue
                definition.imports[alias.asname or alias.name] = ImportRef(
                    module=source_module, name=alias.name
                )
        elif isinstance(node, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
            definition.top_level_names.add(node.name)
        elif isinstance(node, ast.Assign):
            for target in node.targets:
                if isinstance(target, ast.Name):
                    definition.top_level_names.add(target.id)
        elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
            definition.top_level_names.add(node.target.id)
    return definition


def _absolute_module(module: str, name: Optional[str], level: int) -> str:
    """Resolve a relative ``from`` import against the definition's package."""
    if level == 0:
        return name or ""
    package = module.split(".")[:-level]
    if name:
        package.append(name)
    return ".".join(package)


def resolve_marker(definition: Definition, node: ast.expr) -> Optional[str]:
    """Return the canonical marker name *node* refers to, if any.

    Handles ``Path``, ``PathParam`` (aliased import), ``apibind.Path`` and
    ``ab.Path`` (aliased package). Calls resolve through their callee, so
    ``api_handler(...)`` yields ``"api_handler"``.
    """
    if isinstance(node, ast.Call):
        return resolve_marker(definition, node.func)
    if isinstance(node, ast.Name):
        ref = definition.imports.get(node.id)
        if ref and ref.name in MARKER_NAMES and ref.module in MARKER_MODULES:
            return ref.name
        return None
    if isinstance(node, ast.Attribute) and node.attr in MARKER_NAMES:
        owner = _dotted(node.value)
        if owner is None:
            return None
        head, _, rest = owner.partition(".")
        ref = definition.imports.get(head)
        if ref is None:
            return None
        full = ref.module if ref.name is None else f"{ref.module}.{ref.name}"
        if rest:
            full = f"{full}.{rest}"
        return node.attr if full in MARKER_MODULES else None
    return None


def _dotted(node: ast.expr) -> Optional[str]:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        owner = _dotted(node.value)
        return f"{owner}.{node.attr}" if owner else None
    return None


def find_service_classes(definition: Definition) -> list[ast.ClassDef]:
    """Top-level classes decorated with @api, in source order."""
    return [
        node
        for node in definition.tree.body
        if isinstance(node, ast.ClassDef)
        and any(resolve_marker(definition, d) == "api" for d in node.decorator_list)
    ]
