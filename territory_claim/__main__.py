"""Module entry point: python -m territory_claim ..."""

from __future__ import annotations

from territory_claim.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
