from __future__ import annotations

import uvicorn

from dashma_monitor.api.app import create_app
from dashma_monitor.config import MonitorConfig, get_config
from dashma_monitor.log_setup import configure_logging


def run(config: MonitorConfig | None = None, host: str | None = None, port: int | None = None) -> None:
    config = config or get_config()
    configure_logging(config.log_level)
    app = create_app(config)
    uvicorn.run(
        app,
        host=(host or config.api_host).strip() or "0.0.0.0",
        port=int(port or config.api_port),
        log_level=config.log_level.lower(),
    )


def main() -> None:
    run()


if __name__ == "__main__":
    main()
