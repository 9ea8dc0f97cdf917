"""Create the batching bucket and empty action trackers on LocalStack or AWS.

Usage:
    python scripts/create_bucket.py --endpoint-url http://localhost:4566
"""

from __future__ import annotations

import argparse
import json
from typing import Any

import boto3
from botocore.exceptions import ClientError

ACTIONS = ["copyAction", "promoteAction", "deleteAction"]
DEFAULT_ROOT = "floodgate/batching"


def create_bucket(s3: Any, bucket: str, region: str = "us-east-1") -> None:
    """Create ``bucket``. Skips if it already exists."""
    try:
        s3.head_bucket(Bucket=bucket)
        print(f"  Bucket {bucket} already exists, skipping")
        return
    except ClientError:
        pass
    if region == "us-east-1":
        s3.create_bucket(Bucket=bucket)
    else:
        s3.create_bucket(
            Bucket=bucket, CreateBucketConfiguration={"LocationConstraint": region},
        )
    print(f"  Created bucket {bucket}")


def seed_trackers(s3: Any, bucket: str, root: str = DEFAULT_ROOT) -> list[str]:
    """Write an empty tracker for every action that has none yet."""
    written = []
    for action in ACTIONS:
        key = f"{root}/{action}/tracker.json"
        resp = s3.list_objects_v2(Bucket=bucket, Prefix=key)
        if resp.get("KeyCount", 0):
            print(f"  Tracker {key} already exists, skipping")
            continue
        s3.put_object(Bucket=bucket, Key=key, Body=json.dumps({"instanceKeys": []}).encode(),
                      ContentType="application/json")
        written.append(key)
        print(f"  Seeded {key}")
    return written


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the Floodgate batching bucket")
    parser.add_argument("--bucket", default="floodgate-batching")
    parser.add_argument("--region", default="us-east-1")
    parser.add_argument("--endpoint-url", default=None, help="LocalStack endpoint")
    parser.add_argument("--root", default=DEFAULT_ROOT, help="Batch files path")
    parser.add_argument("--skip-trackers", action="store_true")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url
    s3 = boto3.client("s3", **kwargs)

    print("Creating bucket...")
    create_bucket(s3, args.bucket, args.region)
    if not args.skip_trackers:
        print("Seeding trackers...")
        seed_trackers(s3, args.bucket, args.root)
    print("Done.")


if __name__ == "__main__":
    main()
