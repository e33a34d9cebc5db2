"""Entry point for the Superbecks Textual app."""

from __future__ import annotations

import sys

from superbecks.backend import Backend
from superbecks.config import load_backend_settings
from superbecks.errors import ConfigError
from superbecks.pos_app import SuperbecksApp


def main() -> None:
    settings = load_backend_settings()
    try:
        backend = Backend.from_settings(settings)
    except ConfigError as exc:
        print(f"superbecks: {exc.message} (set SUPABASE_URL and SUPABASE_ANON_KEY)", file=sys.stderr)
        raise SystemExit(2) from exc
    SuperbecksApp(backend).run()


if __name__ == "__main__":
    main()
