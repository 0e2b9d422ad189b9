#!/usr/bin/env python
"""
Run the Service Cart API under uvicorn.

The app polls the provider feeds for its whole lifetime, so it runs as a
single process without auto-reload.

Usage:
    SERVICE_CART_PORT=8000 python scripts/run_api.py
"""
import os
import subprocess
import sys
from pathlib import Path


def main():
    project_root = Path(__file__).parent.parent
    src_path = str(project_root / "src")

    env = os.environ.copy()
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [src_path, env.get("PYTHONPATH")]))

    port = env.get("SERVICE_CART_PORT", "8000")
    print(f"Starting Service Cart API on port {port} (feeds: {env.get('SERVICE_CART_API_URL', 'default')})...")
    try:
        subprocess.run([
            sys.executable, "-m", "uvicorn",
            "service_cart.api.main:app",
            "--host", env.get("SERVICE_CART_HOST", "0.0.0.0"),
            "--port", port,
        ], cwd=project_root, env=env)
    except KeyboardInterrupt:
        print("\nAPI stopped.")


if __name__ == "__main__":
    main()
