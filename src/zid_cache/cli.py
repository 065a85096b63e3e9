"""ZID cache inspection commands."""
from __future__ import annotations

import json
from pathlib import Path

import click

from zid_core.ids import zid_hex

from .cache_file import ZidCacheFile
from .errors import CacheError
from .export import export_records, record_rows

CANONICAL_JSON_KW = {"sort_keys": True, "separators": (",", ":"), "ensure_ascii": False}

cache_arg = click.argument(
    "path", envvar="ZIDCACHE_FILE", type=click.Path(dir_okay=False, path_type=Path)
)


def _echo_json(obj) -> None:
    click.echo(json.dumps(obj, **CANONICAL_JSON_KW))


def _fatal(e: CacheError) -> None:
    # Fail closed with a single-line reason.
    click.echo(f"FATAL: {e.code}: {e}", err=True)
    raise SystemExit(1)


@click.group()
def main():
    pass


@main.command("init")
@cache_arg
def init_cmd(path: Path):
    """Open PATH, creating a new cache with a random ZID if it does not exist."""
    try:
        with ZidCacheFile() as cache:
            cache.open(path)
            _echo_json({"path": str(path), "own_zid": zid_hex(cache.associated_zid)})
    except CacheError as e:
        _fatal(e)


@main.command("show")
@cache_arg
def show_cmd(path: Path):
    """Print own ZID and peer records; a legacy file is migrated first."""
    if not path.exists():
        raise click.BadParameter(f"{path} does not exist", param_hint="PATH")
    try:
        with ZidCacheFile() as cache:
            cache.open(path)
            out = {
                "path": str(path),
                "own_zid": zid_hex(cache.associated_zid),
                "records": record_rows(cache),
                "migration": cache.last_migration.as_dict() if cache.last_migration else None,
            }
    except CacheError as e:
        _fatal(e)
    _echo_json(out)


@main.command("export")
@cache_arg
@click.argument("out", type=click.Path(dir_okay=False, path_type=Path))
def export_cmd(path: Path, out: Path):
    """Write peer record state of PATH to the Parquet file OUT."""
    if not path.exists():
        raise click.BadParameter(f"{path} does not exist", param_hint="PATH")
    try:
        with ZidCacheFile() as cache:
            cache.open(path)
            n = export_records(cache, out)
    except CacheError as e:
        _fatal(e)
    click.echo(f"PASS: {n} records exported to {out}")


if __name__ == "__main__":
    main()
