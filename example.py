# example.py
# A small example demonstrating how to use the csw_resolver library to
# find the best download link of a catalog record and fetch the file.

import asyncio
import logging
import sys

from csw_resolver import CswResolverError, get_resource, resolve_record

# --- Configuration ---
# Logging shows every candidate link, probe and WFS format attempt.
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

# A public CSW endpoint; the record identifier comes from the command line.
CATALOG_URL = "https://www.geo2france.fr/geonetwork/srv/fre/csw"
RECORD_ID = sys.argv[1] if len(sys.argv) > 1 else None


async def main():
    if RECORD_ID is None:
        print("usage: python example.py RECORD_ID")
        return
    print(f"[*] Resolving download link for {RECORD_ID} ({CATALOG_URL})\n")

    try:
        # Resolution only: fetch the ISO 19139 record and pick the best link.
        result = await resolve_record(CATALOG_URL, RECORD_ID)
        if result is None:
            print("\nNo viable download link found.")
            return

        print("\n--- RESOLVED ---")
        print(f"Format: {result.format}")
        print(f"URL:    {result.url}")

        # Full import: resolve again and stream the file to ./downloads.
        resource = await get_resource(CATALOG_URL, RECORD_ID, "downloads")
        print("\n--- DOWNLOADED ---")
        print(f"{resource.title} -> {resource.file_path} ({resource.size} bytes)")

    except CswResolverError as e:
        print(f"\n[!] {e}")


if __name__ == "__main__":
    asyncio.run(main())
