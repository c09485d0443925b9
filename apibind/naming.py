"""Names used in generated code and path-template helpers.

Pattern for service ``UserService`` with method ``get_user``:
  - modules:        user_service_server.py / user_service_client.py
  - client class:   UserServiceClient
  - error type:     UserServiceClientError
  - server handler: _handle_get_user
  - type adapters:  _GET_USER_RESULT, _GET_USER_PATH, _GET_USER_<PARAM>

Path placeholders use ``{name}`` syntax:
  /users/{user_id}/posts/{post_id} -> ["user_id", "post_id"]
  /users/{user_id}/posts/{post_id} -> "/users/{}/posts/{}" (client format string)
"""

from __future__ import annotations

import keyword
import re

PLACEHOLDER_RE = re.compile(r"\{([^{}]*)\}")


def _camel_to_snake(name: str) -> str:
    """Convert camelCase or PascalCase to snake_case."""
    s1 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    return re.sub(r"([a-z\d])([A-Z])", r"\1_\2", s1).lower()


def module_name(service: str, suffix: str) -> str:
    """Generated module name, e.g. ``user_service_server``."""
    return f"{_camel_to_snake(service)}{suffix}"


def client_class_name(service: str) -> str:
    return f"{service}Client"


def client_error_name(service: str) -> str:
    return f"{service}ClientError"


def handler_name(method: str) -> str:
    return f"_handle_{method}"


def adapter_name(method: str, slot: str) -> str:
    """Module-level TypeAdapter constant for one method slot."""
    return f"_{method.upper()}_{slot.upper()}"


def safe_local(name: str, reserved: set[str] | frozenset[str]) -> str:
    """Rename *name* with trailing underscores until it avoids *reserved*."""
    while name in reserved or keyword.iskeyword(name):
        name += "_"
    return name


def path_placeholders(template: str) -> list[str]:
    """Placeholder names in order of appearance."""
    return PLACEHOLDER_RE.findall(template)


def positional_template(template: str) -> str:
    """Replace each ``{name}`` with ``{}`` for positional formatting."""
    return PLACEHOLDER_RE.sub("{}", template)


def docstring_text(text: str) -> str:
    """Make *text* safe to embed in a triple-quoted docstring."""
    text = " ".join(text.split())
    return text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"').rstrip('"')
