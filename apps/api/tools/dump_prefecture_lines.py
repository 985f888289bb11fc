#!/usr/bin/env python3
"""
Build the offline prefecture -> line catalog used for region-scoped gachas.

Output: apps/api/data/prefecture_lines.csv  (headers: prefecture,line)
"""

import argparse
import os
import sys
import time
from pathlib import Path

from dotenv import load_dotenv
from tqdm import tqdm

from clients.heartrails_express import (
    DEFAULT_BASE_URL,
    HeartRailsExpressClient,
    StationDirectoryError,
)
from services.gacha_constants import LINE_CATALOG_FILE
from services.line_catalog import LineCatalog
from services.regions import prefecture_names


def main():
    ap = argparse.ArgumentParser(description="Dump getLines for every prefecture.")
    ap.add_argument("--outfile", default=str(LINE_CATALOG_FILE))
    ap.add_argument("--pref", action="append", help="limit to these prefectures (repeatable)")
    ap.add_argument("--sleep", type=float, default=0.3, help="pause between requests (sec)")
    ap.add_argument("--timeout", type=float, default=15.0)
    args = ap.parse_args()

    load_dotenv()
    client = HeartRailsExpressClient(
        base_url=os.getenv("HEARTRAILS_BASE_URL", DEFAULT_BASE_URL),
        timeout=args.timeout,
        max_retries=2,
    )

    targets = args.pref or prefecture_names()
    lines_by_pref: dict[str, list[str]] = {}
    failed: list[str] = []
    for pref in tqdm(targets, desc="getLines"):
        try:
            lines_by_pref[pref] = client.fetch_lines(pref)
        except StationDirectoryError as exc:
            print(f"⚠️ {pref}: {exc}", file=sys.stderr)
            failed.append(pref)
        time.sleep(args.sleep)

    df = LineCatalog.to_frame(lines_by_pref)
    out = Path(args.outfile)
    out.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out, index=False, encoding="utf-8")
    print(f"✅ Saved {len(df)} rows ({len(lines_by_pref)} prefectures) → {out}")
    if failed:
        print(f"❌ failed: {', '.join(failed)}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
