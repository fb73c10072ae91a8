import pytest
from fastapi.testclient import TestClient

from javaspan.config import GeneratorConfig
from scripts.app import create_app


SRC = (
    "package demo;\n"
    "\n"
    "public class Point {\n"
    "\n"
    "    private int x;\n"
    "\n"
    "    static class Pair {\n"
    "        int a;\n"
    "    }\n"
    "\n"
    "}\n"
)

FIELD_END = SRC.index("private int x;") + len("private int x;")


@pytest.fixture
def client():
    return TestClient(create_app(GeneratorConfig()))


class TestApi:

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["ok"] is True

    def test_classes(self, client):
        r = client.post("/classes", json={"text": SRC})
        assert r.status_code == 200
        point = r.json()["classes"][0]
        assert point["inner_classes"][0]["loader_name"] == "Point$Pair"

    def test_insert_index(self, client):
        r = client.post("/insert-index", json={"text": SRC, "offset": FIELD_END})
        assert r.json() == {"class_name": "Point", "scope": 1, "insert_index": FIELD_END}

        inner = SRC.index("int a;")
        r = client.post("/insert-index", json={"text": SRC, "offset": inner})
        assert r.json()["class_name"] == "Point$Pair"
        assert r.json()["scope"] == 2

    def test_locate(self, client):
        r = client.post("/locate", json={"text": SRC, "offset": FIELD_END, "method": "equals"})
        assert r.status_code == 200
        assert r.json() == {"class_name": "Point", "range": None}

    def test_no_class_pointed(self, client):
        r = client.post("/insert-index", json={"text": SRC, "offset": 0})
        assert r.status_code == 404

    def test_invalid_request(self, client):
        r = client.post("/insert-index", json={"text": SRC, "offset": -1})
        assert r.status_code == 422
        r = client.post("/locate", json={"text": SRC, "offset": 1, "method": "finalize"})
        assert r.status_code == 422

    def test_generate_and_conflict(self, client):
        body = {"text": SRC, "offset": FIELD_END, "kind": "equals", "fields": ["int x"]}
        r = client.post("/generate", json=body)
        assert r.status_code == 200
        data = r.json()
        assert "o -> o.x" in data["text"]
        assert [e["kind"] for e in data["edits"]] == ["insert"]

        again = client.post("/generate", json={**body, "text": data["text"]})
        assert again.status_code == 409

        forced = client.post("/generate", json={**body, "text": data["text"], "regenerate": True})
        assert forced.status_code == 200
        assert forced.json()["edits"][0]["kind"] == "replace"

    def test_generate_accessors(self, client):
        r = client.post(
            "/generate",
            json={"text": SRC, "offset": FIELD_END, "kind": "withers", "fields": ["int x"]},
        )
        assert r.status_code == 200
        assert "public Point withX( int x )" in r.json()["text"]

    def test_bad_field_descriptor(self, client):
        r = client.post("/generate", json={"text": SRC, "offset": FIELD_END, "kind": "getters", "fields": ["x"]})
        assert r.status_code == 422

    def test_overlapping_classes(self, client):
        r = client.post("/classes", json={"text": "class A { class B } x }"})
        assert r.status_code == 422
