"""Console entrypoint."""

import asyncio
import os
import sys

from tern import bootstrap


def _dev_checks_enabled() -> bool:
    return os.environ.get("DEBUG", "").lower() in {"1", "true"}


def main(argv: list[str] | None = None) -> int:
    """Run tern and return its exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        # DEBUG also turns on asyncio's debug mode (slow callbacks, unawaited coroutines).
        return asyncio.run(bootstrap.main(args), debug=_dev_checks_enabled())
    except KeyboardInterrupt:
        return 130


def entrypoint() -> None:
    """Console script entrypoint."""
    raise SystemExit(main())
