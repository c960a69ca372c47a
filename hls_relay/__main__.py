"""Run the relay with uvicorn."""

import uvicorn

from hls_relay.config import settings


def main() -> None:
    uvicorn.run(
        "hls_relay.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
