"""Server entrypoint.

    python -m convos_gateway

Binds to ``HOST``/``PORT`` from settings (honours .env).
"""

from __future__ import annotations

import uvicorn

from convos_gateway.config import settings


def main() -> None:
    uvicorn.run(
        "convos_gateway.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
