import json
import os
import subprocess
import sys
from pathlib import Path

import pandas as pd


def run(args, cwd):
    env = dict(os.environ)
    src = str(Path(cwd) / "src")
    env["PYTHONPATH"] = src + os.pathsep + env.get("PYTHONPATH", "")
    return subprocess.run(
        [sys.executable, *args], cwd=cwd, env=env, check=False, capture_output=True, text=True
    )


def test_legacy_migrate_show_export_and_corrupt(tmp_path):
    repo = Path(__file__).resolve().parents[1]
    cache = tmp_path / "zid.cache"
    out = tmp_path / "export" / "records.parquet"

    # Legacy fixture
    r = run(["tools/make_legacy_cache.py", str(cache), "--peers", "4", "--invalid", "2"], cwd=repo)
    assert r.returncode == 0, r.stderr + r.stdout
    own = r.stdout.split("own=")[1].split()[0]

    # First open migrates
    r = run(["-m", "zid_cache.cli", "show", str(cache)], cwd=repo)
    assert r.returncode == 0, r.stderr + r.stdout
    shown = json.loads(r.stdout)
    assert shown["own_zid"] == own
    assert shown["migration"]["migrated"] == 4
    assert shown["migration"]["skipped"] == 2
    assert len(shown["records"]) == 4
    assert all(rec["valid"] and rec["rs1_valid"] for rec in shown["records"])

    # Second open does not
    r = run(["-m", "zid_cache.cli", "show", str(cache)], cwd=repo)
    assert r.returncode == 0, r.stderr + r.stdout
    assert json.loads(r.stdout)["migration"] is None

    r = run(["-m", "zid_cache.cli", "export", str(cache), str(out)], cwd=repo)
    assert r.returncode == 0, r.stderr + r.stdout
    df = pd.read_parquet(out)
    assert len(df) == 4
    assert sorted(df["zid"]) == sorted(rec["zid"] for rec in shown["records"])
    assert not any("rs1" == c or "secret" in c for c in df.columns)

    # Corrupt and ensure failure
    r = run(["scripts/corrupt_one_byte.py", str(cache)], cwd=repo)
    assert r.returncode == 0, r.stderr + r.stdout
    r = run(["-m", "zid_cache.cli", "show", str(cache)], cwd=repo)
    assert r.returncode == 1
    assert "E_INVALID_FORMAT" in r.stderr


def test_init_creates_cache(tmp_path):
    repo = Path(__file__).resolve().parents[1]
    cache = tmp_path / "new.cache"

    r = run(["-m", "zid_cache.cli", "init", str(cache)], cwd=repo)
    assert r.returncode == 0, r.stderr + r.stdout
    first = json.loads(r.stdout)["own_zid"]
    assert len(bytes.fromhex(first)) == 16

    r = run(["-m", "zid_cache.cli", "init", str(cache)], cwd=repo)
    assert json.loads(r.stdout)["own_zid"] == first
