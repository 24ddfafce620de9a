from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from imaginify.db.store import MongoStore
from imaginify.main import create_app


def test_health(settings, revalidator):
    store = MongoStore(settings, client=AsyncMongoMockClient())
    app = create_app(settings=settings, store=store, revalidator=revalidator)
    with TestClient(app) as c:
        assert store.connected
        r = c.get("/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok"}
        assert r.headers["X-Request-ID"]
    assert not store.connected
