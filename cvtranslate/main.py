"""
CV translation service - main entry point.

Runs the API with uvicorn using the host and port from settings:

    python -m cvtranslate.main
"""

from __future__ import annotations

import uvicorn

from cvtranslate.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "cvtranslate.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug and not settings.is_production,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
