from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient


# Ensure `import geoplotter.*` works when pytest chooses an import mode that
# doesn't automatically add the project root to sys.path.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    monkeypatch.setenv("GEOPLOTTER_MAPBOX_PUBLIC_KEY", "pk.test-token")
    monkeypatch.setenv("GEOPLOTTER_CORS_ALLOW_ORIGIN", "http://localhost:3000")
    monkeypatch.setenv("GEOPLOTTER_FETCH_TIMEOUT_S", "2")
    monkeypatch.setenv("GEOPLOTTER_MAX_VIEWS", "4")

    # Clear settings cache so the env above is picked up.
    from geoplotter.core.settings import get_settings

    get_settings.cache_clear()

    from geoplotter.main import create_app

    app = create_app()
    # Context manager keeps one event loop alive so view timers survive requests.
    with TestClient(app) as c:
        yield c

    get_settings.cache_clear()
