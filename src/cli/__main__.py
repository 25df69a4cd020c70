"""``python -m src.cli`` runs the same parser as ``feed-generator``."""

from __future__ import annotations

from .cli_modular import main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
