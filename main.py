"""Character sheet — dev launcher. Starts the API server in watch mode."""

import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path

from charsheet.config import load_settings

ROOT = Path(__file__).parent

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Character sheet dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Clean and create demo characters")
    parser.add_argument("--clear-all", action="store_true",
                        help="Remove all character sheet data and exit")
    args = parser.parse_args()

    settings = load_settings(ROOT / ".env")
    if args.data_dir:
        settings.data_dir = args.data_dir
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.demo or args.clear_all:
        from charsheet.core import clear_all_data, core_from_settings
        core = core_from_settings(settings)
        if args.clear_all:
            removed = clear_all_data(core.kv, settings.key_prefix)
            print(f"Removed {removed} character sheet keys from {settings.storage_path}")
            return
        from backend.demo import create_demo_data
        ids = create_demo_data(core)
        print(f"Created demo characters: {', '.join(ids)}")

    # Build env for the server process so it picks up the same data dir
    env = os.environ.copy()
    env["DATA_DIR"] = str(settings.data_dir.resolve())

    print(f"Starting server on http://localhost:{PORT} ...")
    proc = subprocess.Popen(
        ["uv", "run", "uvicorn", "backend.app:create_app", "--factory", "--reload",
         "--host", HOST, "--port", PORT],
        cwd=ROOT, env=env,
    )
    try:
        proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        proc.terminate()
        proc.wait()
        sys.exit(0)


if __name__ == "__main__":
    main()
