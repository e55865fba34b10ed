#!/usr/bin/env python
"""Export the FastAPI OpenAPI schema to vpnmeter/openapi.yaml."""

from __future__ import annotations

import sys
import tempfile
from pathlib import Path
from typing import Any

import yaml

REPO_ROOT = Path(__file__).resolve().parent.parent


def build_schema() -> dict[str, Any]:
    """Render the schema from an app backed by throwaway storage."""

    if str(REPO_ROOT) not in sys.path:
        sys.path.insert(0, str(REPO_ROOT))

    from vpnmeter.core.config import Settings  # noqa: WPS433
    from vpnmeter.main import create_app  # noqa: WPS433

    with tempfile.TemporaryDirectory(prefix="vpnmeter-openapi-") as storage_dir:
        app = create_app(Settings(storage_path=Path(storage_dir), collector_enabled=False))
        try:
            return app.openapi()
        finally:
            app.state.bandwidth_service.close()


def main() -> None:
    output_path = REPO_ROOT / "vpnmeter" / "openapi.yaml"
    output_path.write_text(yaml.dump(build_schema(), sort_keys=False), encoding="utf-8")
    print(f"Wrote {output_path.relative_to(REPO_ROOT)}")


if __name__ == "__main__":
    main()
