from __future__ import annotations

import uvicorn

from image_relay.core.config import get_settings
from image_relay.core.logging_config import configure_logging
from image_relay.main import create_app


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
