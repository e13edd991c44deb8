"""Server entry point for the LedgerSync API"""

import os
import socket
import sys

import uvicorn

from ledgersync.core.config import load_settings
from ledgersync.utils.exceptions import ConfigError


def _port_in_use(host: str, port: int) -> bool:
    """Return True if the given port is already in use."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            return False
        except OSError:
            return True


def main() -> None:
    try:
        # Fail fast on bad configuration before uvicorn spawns workers.
        load_settings()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    host = os.getenv("WEB_HOST", "0.0.0.0")
    port = int(os.getenv("WEB_PORT", "8000"))
    if _port_in_use(host, port):
        print(f"Port {port} is in use. Stop the process using it or set WEB_PORT.", file=sys.stderr)
        sys.exit(1)

    workers = int(os.getenv("WEB_WORKERS", "1"))
    print(f"Starting LedgerSync on http://{host}:{port} ({workers} worker(s))")
    uvicorn.run(
        "ledgersync_web.app:create_app",
        factory=True,
        host=host,
        port=port,
        workers=workers,
        reload=False,
    )


if __name__ == "__main__":
    main()
