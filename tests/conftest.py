import pytest

from bursar.core.config import settings

@pytest.fixture(autouse=True)
def audit_dir(tmp_path, monkeypatch):
    path = tmp_path / "logs"
    monkeypatch.setattr(settings, "AUDIT_LOG_PATH", str(path))
    return path
