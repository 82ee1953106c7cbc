#!/usr/bin/env python3
"""
Entrypoint to run the API server:
 - No auto-reload by default (prevents mid-request interruptions)
 - Optional reload for local/dev via UVICORN_RELOAD=1, restricted to the package dir

Uses the fully-qualified app path "talentbridge.scripts.api:app" so we don't
mutate sys.path. .env is loaded by talentbridge.scripts.config on import.
"""
import os

ROOT_DIR = os.path.dirname(__file__)


def main() -> None:
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    log_level = os.getenv("LOG_LEVEL", "info").lower()

    reload_flag = os.getenv("UVICORN_RELOAD") == "1"

    if reload_flag:
        config = uvicorn.Config(
            "talentbridge.scripts.api:app",
            host=host,
            port=port,
            log_level=log_level,
            reload=True,
            reload_dirs=[os.path.join(ROOT_DIR, "talentbridge")],
            reload_excludes=["*.log", "talentbridge/__pycache__"],
        )
    else:
        # Single process; run several behind a process manager for more workers.
        config = uvicorn.Config(
            "talentbridge.scripts.api:app", host=host, port=port, log_level=log_level, reload=False
        )

    server = uvicorn.Server(config)
    server.run()


if __name__ == "__main__":
    main()
