"""Module entrypoint for `python -m tern`."""

from tern.cli import app

raise SystemExit(app.main())
