"""Run the API server: ``python -m docanchor``."""

import uvicorn

from docanchor.core.config import Settings


def main() -> int:
    settings = Settings()  # type: ignore[call-arg]
    uvicorn.run(
        "docanchor.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
