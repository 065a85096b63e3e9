from __future__ import annotations

from pathlib import Path

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from .cache_file import ZidCacheFile

# Secrets never leave the cache; only their state is exported.
SCHEMA = pa.schema(
    [
        ("zid", pa.string()),
        ("offset", pa.int64()),
        ("valid", pa.bool_()),
        ("verified", pa.bool_()),
        ("rs1_valid", pa.bool_()),
        ("rs1_valid_thru", pa.int64()),
        ("rs2_valid", pa.bool_()),
        ("rs2_valid_thru", pa.int64()),
        ("mitm_key_available", pa.bool_()),
    ]
)


def record_rows(cache: ZidCacheFile) -> list[dict]:
    rows: list[dict] = []
    for rec in cache.iter_records():
        fields = rec.fields()
        rows.append(
            {
                "zid": fields.identifier.hex(),
                "offset": int(rec.get_file_offset()),
                "valid": rec.is_valid(),
                "verified": rec.is_verified(),
                "rs1_valid": rec.is_rs1_valid(),
                "rs1_valid_thru": int(fields.rs1_interval),
                "rs2_valid": rec.is_rs2_valid(),
                "rs2_valid_thru": int(fields.rs2_interval),
                "mitm_key_available": rec.is_mitm_key_available(),
            }
        )
    return rows


def export_records(cache: ZidCacheFile, out_file: Path) -> int:
    """Write the peer records of an open cache to a Parquet file.

    Returns the number of rows written. An empty cache still yields a file
    with the full schema.
    """
    rows = record_rows(cache)
    df = pd.DataFrame(rows, columns=SCHEMA.names)
    out_file = Path(out_file)
    out_file.parent.mkdir(parents=True, exist_ok=True)
    table = pa.Table.from_pandas(df, schema=SCHEMA, preserve_index=False)
    pq.write_table(table, out_file)
    return len(rows)
