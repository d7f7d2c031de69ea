"""Module entrypoint for ``python -m secrets_sync``."""

from __future__ import annotations

from secrets_sync.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
