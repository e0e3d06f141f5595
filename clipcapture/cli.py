# clipcapture/cli.py
from __future__ import annotations

"""Command-line interface
------------------------
Save the clipboard image to a file, check the helper's prerequisites and
view effective config. Thin wrapper around clipcapture.capture.
"""

import asyncio
import json
import shutil
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import click

from clipcapture.capture import linux
from clipcapture.capture.report import build_report
from clipcapture.utils.config import get_settings
from clipcapture.utils.files import HelperScriptNotFoundError
from clipcapture.utils.logger import ConsoleCaptureLogger, bind, set_log_level, unbind
from clipcapture.utils.timing import Stopwatch


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NO_IMAGE = 3


# -------- helpers --------


def _echo_json(obj) -> None:
    click.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def _default_image_path() -> Path:
    s = get_settings()
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return s.OUTPUT_DIR / f"{s.IMAGE_BASENAME}_{stamp}.png"


# -------- CLI root --------


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL from settings",
)
@click.version_option(package_name="clipboard-image-capture")
def cli(log_level: Optional[str]):
    _ = get_settings()
    if log_level:
        set_log_level(log_level.upper())


# -------- commands --------


@cli.command("config")
def cmd_config():
    """Print effective configuration (after .env & env vars)."""
    s = get_settings()
    _echo_json(s.model_dump(mode="json"))


@cli.command("check")
def cmd_check():
    """Check that the helper script and the tools it needs are available."""
    checks = [
        ("helper script", str(linux.HELPER_SCRIPT), linux.HELPER_SCRIPT.is_file()),
        ("shell", shutil.which(linux.SHELL) or linux.SHELL, shutil.which(linux.SHELL) is not None),
        ("wl-paste", shutil.which("wl-paste") or "wl-paste", shutil.which("wl-paste") is not None),
    ]
    ok = True
    for label, where, found in checks:
        ok = ok and found
        click.echo(f"{'OK ' if found else 'ERR'} {label}: {where}")
    if not ok:
        click.echo('Install "wl-paste" (part of the wl-clipboard package) if it is missing.')
    sys.exit(EXIT_OK if ok else EXIT_FAILED)


@cli.command("save")
@click.argument("image_path", required=False, type=click.Path(dir_okay=False))
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None,
              help="Override CAPTURE_TIMEOUT_S from settings (seconds)")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print a JSON report instead of text")
def cmd_save(image_path: Optional[str], timeout: Optional[float], as_json: bool):
    """
    Save the clipboard image to IMAGE_PATH.

    Without IMAGE_PATH a timestamped file is created under OUTPUT_DIR.
    Exit status: 0 saved, 1 failed, 3 no image in the clipboard.

    Examples:
      clipcapture save ~/Pictures/shot.png
      clipcapture save --json
    """
    settings = get_settings()
    if image_path:
        target = Path(image_path).expanduser().resolve()
    else:
        settings.ensure_dirs()
        target = _default_image_path()

    wait_s = settings.CAPTURE_TIMEOUT_S if timeout is None else timeout
    logger = ConsoleCaptureLogger(image_path=str(target))

    bind(run_id=datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ"))
    try:
        with Stopwatch() as sw:
            result = asyncio.run(linux.linux_create_image_with_clipboard(target, logger, timeout=wait_s))
    except HelperScriptNotFoundError as e:
        raise click.ClickException(f"helper script missing: {e.filename}") from e
    finally:
        unbind("run_id")

    report = build_report(str(target), result, elapsed_ms=sw.elapsed_ms())

    if as_json:
        click.echo(report.model_dump_json(indent=2))
    elif report.success:
        click.echo(f"OK  {report.image_path} ({report.width}x{report.height})")
    else:
        reason = "no image in clipboard" if report.no_image_in_clipboard else "capture failed"
        click.echo(f"ERR {target} -> {reason}")
        for line in report.script_output:
            click.echo(f"    {line}")

    if report.success:
        sys.exit(EXIT_OK)
    sys.exit(EXIT_NO_IMAGE if report.no_image_in_clipboard else EXIT_FAILED)


def main() -> None:
    cli(prog_name="clipcapture")


if __name__ == "__main__":
    main()
