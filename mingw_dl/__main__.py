"""
Entry point for mingw-dl.

The Typer app runs outside Click's standalone mode so this module decides the
process exit code: 0 on success, 1 on errors or an aborted prompt, 130 when
interrupted.
"""

import logging
import os
import sys

import click
from rich.console import Console

from mingw_dl.cli.app import app
from mingw_dl.cli.formatters import format_error_with_suggestions
from mingw_dl.exceptions import MingwDlError

EXIT_INTERRUPTED = 130

log = logging.getLogger("mingw_dl")


def _force_utf8_output() -> None:
    # Tables and status lines use non-ASCII glyphs.
    if os.name != "nt":
        return
    try:
        sys.stdout.reconfigure(encoding="utf-8")
        sys.stderr.reconfigure(encoding="utf-8")
    except (TypeError, AttributeError):
        pass


def main() -> None:
    _force_utf8_output()
    console = Console()

    try:
        code = app(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.exceptions.Abort as e:
        if isinstance(e.__cause__, KeyboardInterrupt):
            console.print("\n[yellow]⚠️  Interrupted.[/yellow]")
            sys.exit(EXIT_INTERRUPTED)
        console.print("[yellow]Aborted.[/yellow]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Interrupted.[/yellow]")
        sys.exit(EXIT_INTERRUPTED)
    except MingwDlError as e:
        console.print(format_error_with_suggestions(e))
        sys.exit(1)
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)

    sys.exit(code if isinstance(code, int) else 0)


if __name__ == "__main__":
    main()
