"""Entry point: python -m apibind <module>

Reads the definition module, writes <service>_server.py and
<service>_client.py into the output directory (default: generated/).
"""

from __future__ import annotations

from .cli import app


def main() -> None:
    app(prog_name="apibind")


if __name__ == "__main__":
    main()
