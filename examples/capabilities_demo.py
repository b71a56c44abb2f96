#!/usr/bin/env python3
"""
Capabilities Demo -- chuk-mcp-viewshed

Quick-start script showing what the server offers without touching the
network: registered tools, engine defaults, the tile plan for a region,
and the dual output mode (JSON vs text).

Usage:
    python examples/capabilities_demo.py
"""

import asyncio

from tool_runner import ToolRunner

SCENIC = (47.7126, -121.1477)  # Scenic, WA on US Highway 2


async def main() -> None:
    runner = ToolRunner(cache_dir=None)

    print("=" * 60)
    print("chuk-mcp-viewshed -- Server Capabilities")
    print("=" * 60)

    print(f"\nRegistered tools ({len(runner.tool_names)}):")
    for name in sorted(runner.tool_names):
        print(f"  - {name}")

    caps = await runner.run("viewshed_capabilities")
    print("\nEngine defaults:")
    for key, value in caps["defaults"].items():
        print(f"  {key:26s} {value}")

    status = await runner.run("viewshed_status")
    print("\nServer Status:")
    print(f"  {status['server']} v{status['version']}")
    print(f"  Storage: {status['storage_provider']}")
    print(f"  Tile cache: {status['memory_tiles']} tiles in memory")

    # Tile planning is pure arithmetic
    plan = await runner.run("viewshed_region_tiles", lat=SCENIC[0], lon=SCENIC[1], radius_m=3000.0)
    print(f"\nTiles for a 3 km radius around Scenic, WA (zoom {plan['zoom']}):")
    print(f"  {plan['tile_count']} tiles, {plan['meters_per_pixel']:.2f} m/pixel")
    for x, y in plan["tiles"]:
        print(f"    {plan['zoom']}/{x}/{y}")

    # ---------------------------------------------------------------
    # Dual output mode: text vs JSON
    # ---------------------------------------------------------------
    print("\n" + "-" * 60)
    print("Dual Output Mode Demo")
    print("-" * 60)

    print("\nviewshed_status (output_mode='text'):")
    print(await runner.run_text("viewshed_status"))

    print("\nviewshed_coverage (output_mode='text'):")
    print(await runner.run_text("viewshed_coverage"))

    print("\n" + "=" * 60)
    print("Nothing above required network access. Run viewshed_demo.py")
    print("with MAPBOX_ACCESS_TOKEN set to compute real viewsheds.")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
