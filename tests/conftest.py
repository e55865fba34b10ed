from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(scope="session")
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def status_log_text(fixtures_dir: Path) -> str:
    return (fixtures_dir / "openvpn_status.log").read_text(encoding="utf-8")
