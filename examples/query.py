"""Query an exported ZID cache - list peers whose SAS was verified."""
from __future__ import annotations

import sys
from pathlib import Path

import duckdb


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python query.py <records.parquet> [--unverified]")
        print("Example: zidcache export zid.cache records.parquet && python query.py records.parquet")
        sys.exit(1)

    table = Path(sys.argv[1])
    verified = "--unverified" not in sys.argv[2:]

    con = duckdb.connect(":memory:")
    con.execute(f"CREATE VIEW peers AS SELECT * FROM '{table}'")

    sql = """
    SELECT zid, "offset", rs1_valid, rs1_valid_thru, rs2_valid
    FROM peers
    WHERE valid AND verified = ?
    ORDER BY "offset"
    """

    label = "verified" if verified else "unverified"
    print(f"--- Peers ({label}) ---\n")

    df = con.execute(sql, [verified]).fetchdf()
    if df.empty:
        print(f"No {label} peers found.")
    else:
        for _, row in df.iterrows():
            thru = "never expires" if row["rs1_valid_thru"] == -1 else row["rs1_valid_thru"]
            print(f"ZID: {row['zid']}")
            print(f"  Offset: {row['offset']}")
            print(f"  RS1: {'valid' if row['rs1_valid'] else 'none'} ({thru})")
            print(f"  RS2: {'valid' if row['rs2_valid'] else 'none'}")
            print()


if __name__ == "__main__":
    main()
