"""CLI para arrancar el servicio de informes con uvicorn."""
from __future__ import annotations

import argparse
import os

import uvicorn

APP_IMPORT_PATH = "vehicle_reports.main:app"


def _env_bool(key: str, fallback: bool = False) -> bool:
    value = os.getenv(key)
    if value is None:
        return fallback
    return value.strip().lower() in {"1", "true", "yes", "on"}


def main() -> None:
    default_host = os.getenv("APP_HOST", "127.0.0.1")
    default_port = int(os.getenv("APP_PORT", "3001"))
    default_log_level = os.getenv("UVICORN_LOG_LEVEL", "info")

    parser = argparse.ArgumentParser(description="Run the DIMO vehicle reports API.")
    parser.add_argument("--host", default=default_host, help=f"Host interface (default: {default_host!r}).")
    parser.add_argument("--port", type=int, default=default_port, help=f"Port (default: {default_port}).")
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["critical", "error", "warning", "info", "debug", "trace"],
    )
    parser.add_argument("--reload", dest="reload", action="store_true", help="Auto-reload on code changes.")
    parser.add_argument("--no-reload", dest="reload", action="store_false")
    parser.set_defaults(reload=_env_bool("APP_RELOAD", False))

    args = parser.parse_args()
    uvicorn.run(APP_IMPORT_PATH, host=args.host, port=args.port, reload=args.reload, log_level=args.log_level)


if __name__ == "__main__":
    main()
