#!/usr/bin/env python3
"""
Smoke test a real bucket with the configured blob store client.

Uploads a local file, checks it exists, downloads it back, compares the
bytes, and confirms a missing key downloads as an empty path.

Usage:
    python scripts/smoke_test_bucket.py path/to/file.txt

Requires:
    - .env file (or environment) with STORAGE_BUCKET_NAME and credentials
"""

import asyncio
import filecmp
import os
import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from blobstore.config import configure_logging, get_settings  # noqa: E402
from blobstore.dependencies import get_blob_store_client  # noqa: E402


async def run(local_file: Path) -> int:
    settings = get_settings()
    configure_logging(settings.log_level)

    missing = settings.validate_required_fields()
    if missing:
        print(f"Missing configuration: {', '.join(missing)}")
        return 1

    object_key = local_file.name

    async with get_blob_store_client(settings) as client:
        print(f"Uploading {local_file} to {client.bucket_name}/{object_key}")
        await client.upload(local_file, object_key)

        if not await client.exists(object_key):
            print("Uploaded object is not visible")
            return 1

        downloaded = await client.download(object_key, object_key)
        try:
            if not filecmp.cmp(local_file, downloaded, shallow=False):
                print(f"Downloaded copy {downloaded} differs from {local_file}")
                return 1
            print(f"Round trip OK ({downloaded})")
        finally:
            os.remove(downloaded)

        missing_path = await client.download(f"{object_key}.missing", "missing")
        if missing_path:
            print(f"Expected empty path for a missing key, got {missing_path}")
            return 1
        print("Missing key returned an empty path")

    return 0


def main() -> int:
    if len(sys.argv) != 2:
        print(__doc__)
        return 2

    local_file = Path(sys.argv[1])
    if not local_file.is_file():
        print(f"Not a file: {local_file}")
        return 2

    return asyncio.run(run(local_file))


if __name__ == "__main__":
    sys.exit(main())
