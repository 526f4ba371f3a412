"""Export the ledger API's OpenAPI document for client generation."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from finledger.core.config import Settings
from finledger.main import create_application


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--output", type=Path, default=Path("docs/openapi.json"))
    args = parser.parse_args(argv)

    # Observability hooks are irrelevant for a static export.
    app = create_application(Settings(enable_metrics=False, enable_tracing=False))
    document = app.openapi()
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
    print(f"OpenAPI document with {len(document.get('paths', {}))} paths written to {args.output}")


if __name__ == "__main__":
    main()
