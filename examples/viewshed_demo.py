#!/usr/bin/env python3
"""
Viewshed Demo -- chuk-mcp-viewshed

Drives US Highway 2 from Scenic to Berne, WA, accumulating everything a
driver could see, then maps the covered grid cells.

Usage:
    MAPBOX_ACCESS_TOKEN=... python examples/viewshed_demo.py

Output:
    examples/output/highway2_coverage.png
    examples/output/highway2_coverage.geojson

Requirements:
    pip install chuk-mcp-viewshed matplotlib
    (Requires network access to the Mapbox terrain-RGB tile API)
"""

import asyncio
import json
import os
import sys
from pathlib import Path

import matplotlib.pyplot as plt
from matplotlib.collections import PolyCollection

from tool_runner import ToolRunner

# -- Configuration -----------------------------------------------------------

SCENIC = (47.7126, -121.1477)
MAX_DISTANCE_M = 2000.0
ANGULAR_RESOLUTION_DEG = 2.0
STEPS = 40
OUTPUT_DIR = Path(__file__).parent / "output"


# -- Main pipeline -----------------------------------------------------------


async def main() -> None:
    if not os.environ.get("MAPBOX_ACCESS_TOKEN"):
        print("Set MAPBOX_ACCESS_TOKEN to run this demo.")
        sys.exit(1)

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    runner = ToolRunner(
        max_distance_m=MAX_DISTANCE_M,
        angular_resolution_deg=ANGULAR_RESOLUTION_DEG,
    )

    print("=" * 60)
    print("US Highway 2 -- Cumulative Viewshed")
    print("=" * 60)

    # Step 1: Warm the tile cache around the start
    print("\nStep 1: Downloading tiles around Scenic, WA...")
    download = await runner.run(
        "viewshed_download_region", lat=SCENIC[0], lon=SCENIC[1], radius_m=MAX_DISTANCE_M
    )
    if "error" in download:
        print(f"  ERROR: {download['error']}")
        sys.exit(1)
    print(f"  {download['message']}")

    point = await runner.run("viewshed_fetch_point", lat=SCENIC[0], lon=SCENIC[1])
    print(f"  Ground elevation at Scenic: {point.get('elevation_m', float('nan')):.1f}m")

    # Step 2: Single viewshed at the start
    print("\nStep 2: Viewshed at Scenic...")
    print(await runner.run_text("viewshed_calculate", lat=SCENIC[0], lon=SCENIC[1]))

    # Step 3: Drive the route
    print(f"\nStep 3: Simulating the drive ({STEPS} steps per segment)...")
    sim = await runner.run("viewshed_simulate_route", steps=STEPS)
    if "error" in sim:
        print(f"  ERROR: {sim['error']}")
        sys.exit(1)
    print(f"  {sim['message']}")
    print(f"  Positions: {sim['positions']} ({sim['calculated']} recalculated)")

    # Step 4: Export and render
    print("\nStep 4: Rendering coverage...")
    coverage = await runner.run("viewshed_coverage", include_geojson=True)
    fc = json.loads(coverage["geojson"])

    geojson_path = OUTPUT_DIR / "highway2_coverage.geojson"
    geojson_path.write_text(coverage["geojson"])

    polygons = [feature["geometry"]["coordinates"][0] for feature in fc["features"]]
    fig, ax = plt.subplots(1, 1, figsize=(12, 8))
    ax.add_collection(PolyCollection(polygons, facecolors="#3aa655", edgecolors="none"))
    ax.autoscale_view()
    ax.set_aspect(1.5)
    ax.set_xlabel("Longitude")
    ax.set_ylabel("Latitude")
    ax.set_title(
        f"US Highway 2 Viewshed Coverage\n"
        f"{coverage['total_cells']} cells | {coverage['total_area_km2']:.2f} km²",
        fontsize=14,
        fontweight="bold",
    )
    fig.tight_layout()
    png_path = OUTPUT_DIR / "highway2_coverage.png"
    fig.savefig(png_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    print("\n" + "=" * 60)
    print("Demo complete!")
    print(f"  Cells: {coverage['total_cells']}")
    print(f"  Area: {coverage['total_area_km2']:.2f} km²")
    print(f"\nOutput: {png_path}")
    print(f"        {geojson_path}")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
