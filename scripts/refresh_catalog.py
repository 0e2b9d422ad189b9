#!/usr/bin/env python
"""
One-shot catalog refresh - pulls the provider feeds and prints the build report.

Usage:
    python scripts/refresh_catalog.py
"""
import asyncio
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from service_cart.api.state import create_session
from service_cart.config.logging import configure_logging


async def refresh() -> bool:
    session = create_session()
    try:
        ok = await session.refresher.refresh_once()
    finally:
        await session.feed.aclose()

    service = session.service
    report = service.catalog_report or {"source": "default", "metrics": {}, "warnings": []}

    print("=" * 60)
    print("SERVICE CATALOG REFRESH")
    print("=" * 60)
    print(f"  Feeds reachable: {'yes' if ok else 'no (kept last-good data)'}")
    print(f"  Catalog source:  {report.get('source')}")
    for key, value in report.get("metrics", {}).items():
        print(f"  {key}: {value}")
    for warning in report.get("warnings", []):
        print(f"  WARNING: {warning}")
    print()
    print("Packages:")
    for package in service.catalog():
        price = f"{package.price:.0f}" if package.price else "custom quote"
        print(f"  {package.id:<35} {package.name:<35} {price}")
    print()
    print(f"Providers on roster: {len(service.providers)}")
    return ok


def main():
    configure_logging()
    ok = asyncio.run(refresh())
    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
