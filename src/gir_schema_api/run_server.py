"""Executable entry point for launching the GIR Schema FastAPI application.

This module is intentionally minimal so that process managers (uvicorn / gunicorn /
ASGI workers) can import a stable `app` object from `gir_schema_api.app` OR run
`python -m gir_schema_api.run_server` directly for local development.

Environment Variables:
    PORT (int): Override listening port (default 8000).
    GIR_FILE (str): Document to serve (see :mod:`gir_schema_api.app`).

Example:
    $ GIR_FILE=/usr/share/gir-1.0/GLib-2.0.gir python -m gir_schema_api.run_server
    $ PORT=9000 python -m gir_schema_api.run_server
"""

from __future__ import annotations

import os

import uvicorn

from .app import app


def main() -> None:
    """Launch the ASGI server with development-friendly defaults."""
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    main()
