"""qarma entrypoint (minimal dispatcher only).

Implementation lives in:
  * qarma_core.py / qarma_descriptors.py - argument parsing, Qt-free
  * qarma_live.py / qarma_notify.py / qarma_results.py - live protocol and results
  * qarma_app.py  - Qt event loop running the dialog session

Help and version output never import Qt.
"""
from __future__ import annotations

import sys
from qarma_core import (
    __version__, ConfigError, CLICallbacks, EXIT_SUCCESS, EXIT_CONFIG_ERROR, parse_invocation
)


def main(argv: list[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    callbacks = CLICallbacks.from_env()
    try:
        inv = parse_invocation(args, callbacks=callbacks)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    if inv.version:
        print(__version__)
        return EXIT_SUCCESS
    if inv.wants_help:
        import qarma_help
        qarma_help.print_help(inv.help_categories)
        return EXIT_SUCCESS
    # Lazy import so help and argument errors stay light
    try:
        import qarma_app  # type: ignore
    except ModuleNotFoundError as e:
        if 'PySide6' in str(e):
            print('Qt runtime not installed. Install with: pip install PySide6', file=sys.stderr)
            return EXIT_CONFIG_ERROR
        raise
    return qarma_app.run(inv, callbacks=callbacks)


if __name__ == '__main__':  # pragma: no cover
    raise SystemExit(main())
