"""
CloudMedia — CLI Entry Point

Usage:
    python -m cloudmedia.main serve [--port 5050]
    python -m cloudmedia.main compress-pdf INPUT.pdf --target-kb 500 [-o OUT.pdf]
    python -m cloudmedia.main estimate-bitrate --target-mb 10 --duration 60
    python -m cloudmedia.main history --user USER_ID
    python -m cloudmedia.main check-config
"""

from __future__ import annotations

# Load .env file FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

import json
from typing import Optional

import click

from .compression.ghostscript import GhostscriptRunner
from .compression.orchestrator import CompressionRequest, compress_pdf_bytes
from .compression.search import estimate_video_bitrate_kbps
from .config.loader import get_config
from .errors import CloudMediaError
from .logging_config import setup_logging
from .persistence.conversions import ConversionLedger

# Initialize logging
setup_logging()


def get_project_root() -> Path:
    """Get the project root directory."""
    return _project_root


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """CloudMedia — target-size media compression."""
    ctx.ensure_object(dict)
    ctx.obj["root"] = get_project_root()
    ctx.obj["settings"] = get_config()


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=5050, type=int, help="Port (default: 5050)")
@click.option("--debug", is_flag=True, help="Enable debug mode")
def serve(host: str, port: int, debug: bool) -> None:
    """Run the HTTP API."""
    from .api.server import run_server

    if debug:
        setup_logging(level="DEBUG")
    run_server(host=host, port=port, debug=debug)


@cli.command("compress-pdf")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", "output_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Output file (default: <input>_compressed.pdf)")
@click.option("--target-kb", type=float, help="Byte budget in KB")
@click.option("--target-mb", type=float, help="Byte budget in MB")
@click.pass_context
def compress_pdf(
    ctx: click.Context,
    input_path: Path,
    output_path: Optional[Path],
    target_kb: Optional[float],
    target_mb: Optional[float],
) -> None:
    """Compress a local PDF with Ghostscript, no cloud involved."""
    settings = ctx.obj["settings"]
    data = input_path.read_bytes()
    target_bytes = CompressionRequest(
        asset_id=None, target_kb=target_kb, target_mb=target_mb,
    ).target_bytes()

    if target_bytes is not None and target_bytes >= len(data):
        raise click.ClickException("Target size must be smaller than the original file size")

    runner = GhostscriptRunner(gs_binary=settings.gs_binary, timeout=settings.gs_timeout)
    try:
        rendition = compress_pdf_bytes(data, target_bytes, runner)
    except CloudMediaError as e:
        raise click.ClickException(e.message)

    output_path = output_path or input_path.with_name(f"{input_path.stem}_compressed.pdf")
    output_path.write_bytes(rendition.data)

    pct = len(rendition.data) / len(data) * 100
    click.echo(f"  Original:  {len(data):,} bytes")
    if target_bytes is not None:
        click.echo(f"  Target:    {target_bytes:,} bytes")
    click.echo(f"  Result:    {len(rendition.data):,} bytes ({pct:.0f}%)")
    click.echo(f"  Applied:   {json.dumps(rendition.applied)}")
    if rendition.warning:
        click.secho(f"  ⚠ {rendition.warning}", fg="yellow")
    click.secho(f"✓ Written to {output_path}", fg="green")


@cli.command("estimate-bitrate")
@click.option("--target-kb", type=float, help="Byte budget in KB")
@click.option("--target-mb", type=float, help="Byte budget in MB")
@click.option("--duration", type=float, required=True, help="Video duration in seconds")
def estimate_bitrate(target_kb: Optional[float], target_mb: Optional[float], duration: float) -> None:
    """Print the bitrate a video would be encoded at for a target size."""
    target_bytes = CompressionRequest(
        asset_id=None, target_kb=target_kb, target_mb=target_mb,
    ).target_bytes()
    if target_bytes is None:
        raise click.UsageError("Pass --target-kb or --target-mb")
    try:
        kbps = estimate_video_bitrate_kbps(target_bytes, duration)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"{kbps}k")


@cli.command()
@click.option("--user", "user_id", required=True, help="User id")
@click.option("--kind", default=None, help="Filter by conversion kind")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def history(ctx: click.Context, user_id: str, kind: Optional[str], as_json: bool) -> None:
    """List a user's conversions, newest first."""
    settings = ctx.obj["settings"]
    ledger = ConversionLedger(settings.data_path(ctx.obj["root"]) / "conversions.ndjson")
    rows = ledger.list_for_user(user_id, kind=kind)

    if as_json:
        click.echo(json.dumps([r.to_api_dict() for r in rows], indent=2))
        return

    if not rows:
        click.echo("No conversions.")
        return
    for row in rows:
        achieved = row.options.get("achievedBytes")
        size = f" {achieved:,} bytes" if isinstance(achieved, int) else ""
        click.echo(f"{row.created_at_iso}  {row.kind:15} {row.asset_id} → {row.target_format}{size}")
        if row.options.get("warning"):
            click.secho(f"    ⚠ {row.options['warning']}", fg="yellow")


@cli.command("check-config")
@click.pass_context
def check_config(ctx: click.Context) -> None:
    """Check backend, Ghostscript and auth configuration."""
    settings = ctx.obj["settings"]

    click.echo("\n📋 CloudMedia Configuration\n")

    backend = settings.backend_name
    if backend == "mock":
        click.secho("  ✓ transform backend", fg="green", nl=False)
        click.echo(" — mock (in-memory)")
    elif settings.has_cloudinary():
        click.secho("  ✓ transform backend", fg="green", nl=False)
        click.echo(" — cloudinary")
    else:
        click.secho("  ✗ transform backend", fg="red", nl=False)
        click.echo(" — missing: CLOUDINARY_URL or CLOUDINARY_CLOUD_NAME/API_KEY/API_SECRET")

    runner = GhostscriptRunner(gs_binary=settings.gs_binary, timeout=settings.gs_timeout)
    gs_path = runner.locate()
    if gs_path:
        click.secho("  ✓ ghostscript", fg="green", nl=False)
        click.echo(f" — {gs_path} (timeout {settings.gs_timeout}s)")
    else:
        click.secho("  ✗ ghostscript", fg="red", nl=False)
        click.echo(f" — tried: {', '.join(runner.candidates())}")

    tokens = settings.token_map()
    if tokens:
        click.secho("  ✓ api tokens", fg="green", nl=False)
        click.echo(f" — {len(tokens)} configured")
    else:
        click.secho("  ✗ api tokens", fg="red", nl=False)
        click.echo(" — missing: CLOUDMEDIA_API_TOKENS")

    click.echo(f"\n  Data dir: {settings.data_path(ctx.obj['root'])}")


if __name__ == "__main__":
    cli()
