"""Console entrypoint serving the application with uvicorn."""

from __future__ import annotations

import uvicorn

from .config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "audio_splitter.app:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
    )


if __name__ == "__main__":
    main()
