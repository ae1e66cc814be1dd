from __future__ import annotations

from pathlib import Path

import pytest

from cppconform.config import ConformConfig
from cppconform.engine.context import ProjectContext


@pytest.fixture()
def project_ctx(tmp_path: Path) -> ProjectContext:
    return ProjectContext(
        project_root=tmp_path,
        files=(),
        config=ConformConfig(),
    )


@pytest.fixture(autouse=True)
def _single_worker_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CPPCONFORM_WORKERS", raising=False)
