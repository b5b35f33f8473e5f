import os
import sys
import traceback
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

# Load .env before reading PORT/HOST/ENVIRONMENT
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def _unhandled_exception(exc_type, exc_value, exc_tb):
    """Print unhandled exceptions so process manager logs show the cause."""
    if exc_type is KeyboardInterrupt:
        sys.__excepthook__(exc_type, exc_value, exc_tb)
        return
    lines = traceback.format_exception(exc_type, exc_value, exc_tb)
    print("Unhandled exception (process will exit):\n" + "".join(lines), file=sys.stderr, flush=True)
    sys.__excepthook__(exc_type, exc_value, exc_tb)


def main() -> None:
    """Entry point for the AuthVault HTTP service."""
    root_dir = os.path.dirname(os.path.abspath(__file__))
    sys.path.insert(0, root_dir)
    sys.excepthook = _unhandled_exception

    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "127.0.0.1")
    environment = os.getenv("ENVIRONMENT", "development").lower()
    reload = environment == "development"
    workers = int(os.getenv("WORKERS", "1")) if environment == "production" else 1

    print(f"Starting AuthVault from {root_dir}...")
    print(f"Environment: {environment}")
    print(f"Listening on http://{host}:{port}")

    try:
        uvicorn.run(
            "web.app:create_app",
            factory=True,
            host=host,
            port=port,
            reload=reload,
            workers=workers,
            log_level="info" if environment == "production" else "debug",
        )
    except KeyboardInterrupt:
        print("\n\nShutdown complete.")
        sys.exit(0)


if __name__ == "__main__":
    main()
