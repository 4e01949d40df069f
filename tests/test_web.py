import pytest
from fastapi.testclient import TestClient

from storage import todo_key
from web import create_app


@pytest.fixture()
def client(store):
    return TestClient(create_app(store))


def test_index_lists_todos_in_order(client, store):
    store.add("buy milk")
    store.add("walk <dog>")
    store.toggle(0)
    resp = client.get("/")
    assert resp.status_code == 200
    body = resp.text
    assert body.index("buy milk") < body.index("walk &lt;dog&gt;")
    assert 'class="done"' in body
    assert "<dog>" not in body


def test_index_empty(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert "Nothing to do." in resp.text


def test_add_redirects_and_stores(client, store):
    resp = client.post("/add", data={"title": "  call mom "}, follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/"
    assert [(t.id, t.title) for t in store.list()] == [(0, "call mom")]


def test_add_requires_title(client, store):
    resp = client.post("/add", data={"title": "   "}, follow_redirects=False)
    assert resp.status_code == 400
    assert store.list() == []


@pytest.mark.parametrize("method", ["get", "post"])
def test_done_toggles(client, store, method):
    store.add("x")
    resp = getattr(client, method)("/done/0", follow_redirects=False)
    assert resp.status_code == 302
    assert store.get(0).done is True


def test_done_unknown_id_is_404(client):
    assert client.post("/done/7", follow_redirects=False).status_code == 404


def test_done_bad_id_is_400(client):
    assert client.post("/done/abc", follow_redirects=False).status_code == 400
    assert client.post("/done/-1", follow_redirects=False).status_code == 400


@pytest.mark.parametrize("method", ["get", "post"])
def test_clear_deletes(client, store, method):
    store.add("x")
    resp = getattr(client, method)("/clear/0", follow_redirects=False)
    assert resp.status_code == 302
    assert store.list() == []
    assert client.post("/clear/0", follow_redirects=False).status_code == 404


def test_index_500_on_corrupt_record(client, store):
    store.engine.put(todo_key(0), b"{broken")
    assert client.get("/").status_code == 500


def test_metrics_count_handlers(client, store):
    client.get("/")
    client.get("/")
    client.post("/add", data={"title": "a"}, follow_redirects=False)
    client.post("/done/0", follow_redirects=False)
    client.post("/clear/0", follow_redirects=False)
    metrics = client.get("/debug/metrics").json()
    assert metrics == {"n_index": 2, "n_add": 1, "n_done": 1, "n_clear": 1}


def test_stats_track_status_codes(client):
    client.get("/")
    client.post("/done/1", follow_redirects=False)
    data = client.get("/debug/stats").json()
    assert data["total_count"] == 2
    assert data["status_code_count"] == {"200": 1, "404": 1}
    assert data["average_response_time_sec"] >= 0


def test_large_page_is_gzipped(client, store):
    for i in range(60):
        store.add(f"todo item number {i}")
    resp = client.get("/", headers={"Accept-Encoding": "gzip"})
    assert resp.status_code == 200
    assert resp.headers.get("content-encoding") == "gzip"
    assert "todo item number 59" in resp.text


@pytest.mark.parametrize("path", ["/done/%C2%B2", "/clear/%D9%A1"])
def test_non_ascii_digit_id_is_400(client, path):
    assert client.post(path, follow_redirects=False).status_code == 400


def test_stats_count_requests_that_raise(store, monkeypatch):
    def boom():
        raise RuntimeError("unexpected")

    monkeypatch.setattr(store, "list", boom)
    client = TestClient(create_app(store), raise_server_exceptions=False)
    assert client.get("/").status_code == 500
    data = client.get("/debug/stats").json()
    assert data["total_count"] == 1
    assert data["status_code_count"] == {"500": 1}
