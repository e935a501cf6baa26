import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

# Ensure project root on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from apps.api.main import app, get_store
from libs.core.i18n import I18n
from libs.core.models import Alias, Document, Entity, Folder, Snapshot
from libs.storage import JsonFileStore, Workspace


def make_gateway(snapshot: Snapshot | None = None) -> MagicMock:
    """Gateway double returning ``snapshot`` from fetch_all and recording writes."""

    gateway = MagicMock()
    gateway.fetch_all.return_value = snapshot or Snapshot()
    return gateway


@pytest.fixture()
def gateway() -> MagicMock:
    return make_gateway(
        Snapshot(
            folders=[Folder(id="f1", name="Geography")],
            documents=[
                Document(id="d1", title="Rivers", content="<p>Along the Nile river</p>", folder_id="f1"),
                Document(id="d2", title="Notes", content="<p>Intro</p>"),
            ],
            entities=[
                Entity(id="e1", primary_name="Ada", aliases=[Alias(id="a1", name="AL")], color="#ffcccc"),
                Entity(id="e2", primary_name="Nile", color="#ccffcc"),
            ],
        )
    )


@pytest.fixture()
def workspace(gateway: MagicMock) -> Workspace:
    return Workspace.load(gateway)


@pytest.fixture()
def i18n() -> I18n:
    return I18n("en")


@pytest.fixture()
def store(tmp_path: Path) -> JsonFileStore:
    store = JsonFileStore(tmp_path / "data")
    store.ensure_files()
    return store


@pytest.fixture()
def client(store: JsonFileStore):
    """FastAPI test client backed by a temporary data directory."""

    app.dependency_overrides[get_store] = lambda: store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
