"""
Chart API Tests

Exercises the HTTP surface end to end against an in-memory backend.
"""

import pytest
from fastapi.testclient import TestClient

from backend.api.server import create_app
from backend.engine import ApiConfig, BackendConfig, OrgFlowBackend


def make_backend(seed=True):
    return OrgFlowBackend(BackendConfig(api=ApiConfig(seed_on_empty=seed)))


@pytest.fixture
def backend():
    return make_backend()


@pytest.fixture
def client(backend):
    with TestClient(create_app(backend=backend)) as test_client:
        yield test_client


def node_ids(client, chart_id="acme-corp"):
    return {n["id"] for n in client.get(f"/api/charts/{chart_id}/nodes").json()}


class TestCharts:

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "online"
        assert body["charts"] == 3
        assert body["nodes"] == 24

    def test_list_charts(self, client):
        charts = client.get("/api/charts").json()
        assert {c["id"] for c in charts} == {"acme-corp", "techstart-eng", "global-marketing"}
        assert all(c["nodeCount"] == 8 for c in charts)

    def test_create_from_template(self, client):
        response = client.post("/api/charts", json={"title": "New Co", "template": "startup"})
        assert response.status_code == 201
        chart = response.json()
        assert chart["title"] == "New Co"
        assert chart["nodeCount"] == 5
        assert chart["nextId"] == 6

    def test_create_from_nested_nodes(self, client):
        nodes = {"id": 1, "name": "Root", "children": [{"id": 2, "name": "Child", "personName": "Ada"}]}
        chart = client.post("/api/charts", json={"title": "Nested", "nodes": nodes}).json()
        listed = client.get(f"/api/charts/{chart['id']}/nodes").json()
        assert [(n["id"], n["parentId"], n["responsible"]) for n in listed] == [(1, None, ""), (2, 1, "Ada")]

    def test_unknown_template_is_bad_request(self, client):
        response = client.post("/api/charts", json={"template": "galactic"})
        assert response.status_code == 400
        assert "galactic" in response.json()["detail"]

    def test_rename(self, client):
        assert client.patch("/api/charts/acme-corp", json={"title": "Acme"}).json()["title"] == "Acme"
        assert client.patch("/api/charts/acme-corp", json={"title": ""}).status_code == 422

    def test_duplicate_without_body(self, client):
        response = client.post("/api/charts/acme-corp/duplicate")
        assert response.status_code == 201
        copy = response.json()
        assert copy["title"] == "Acme Corp - Executive Team (Copy)"
        assert node_ids(client, copy["id"]) == node_ids(client)

    def test_delete_chart(self, client):
        assert client.delete("/api/charts/acme-corp").json() == {"success": True, "deletedNodes": 8}
        assert client.get("/api/charts/acme-corp/meta").status_code == 404

    def test_unknown_chart_is_not_found(self, client):
        response = client.get("/api/charts/nope/nodes")
        assert response.status_code == 404
        assert "nope" in response.json()["detail"]

    def test_empty_chart_tree_is_empty_object(self, client):
        chart = client.post("/api/charts", json={"title": "Empty"}).json()
        assert client.get(f"/api/charts/{chart['id']}/tree").json() == {}


class TestNodes:

    def test_tree(self, client):
        tree = client.get("/api/charts/acme-corp/tree").json()
        assert tree["name"] == "CEO"
        assert tree["personName"] == "John Smith"
        assert [c["id"] for c in tree["children"]] == [2, 3, 4]

    def test_add_node(self, client):
        response = client.post("/api/charts/acme-corp/add-node", json={"parentId": 5, "name": "Intern"})
        assert response.status_code == 201
        assert response.json() == {"id": 9}
        meta = client.get("/api/charts/acme-corp/meta").json()
        assert meta["nextId"] == 10
        assert meta["nodeCount"] == 9

    def test_add_node_with_requested_id(self, client):
        assert client.post("/api/charts/acme-corp/add-node", json={"id": 20, "parentId": 1}).json() == {"id": 20}

    def test_update_node_ignores_style_fields(self, client):
        body = {"id": 2, "name": "Chief Technologist", "color": "#FF0000"}
        assert client.post("/api/charts/acme-corp/update-node", json=body).json() == {"success": True}
        node = next(n for n in client.get("/api/charts/acme-corp/nodes").json() if n["id"] == 2)
        assert node["name"] == "Chief Technologist"
        assert node["color"] == "#003057"
        assert node["responsible"] == "Jane Doe"

    def test_update_node_reparents(self, client):
        client.post("/api/charts/acme-corp/update-node", json={"id": 8, "parentId": "2"})
        node = next(n for n in client.get("/api/charts/acme-corp/nodes").json() if n["id"] == 8)
        assert node["parentId"] == 2

    def test_update_missing_node(self, client):
        response = client.post("/api/charts/acme-corp/update-node", json={"id": 404, "name": "x"})
        assert response.status_code == 404

    def test_update_nodes_batch(self, client):
        body = {"updates": [
            {"id": 2, "changes": {"name": "A"}},
            {"id": "3", "changes": {"status": "Hiring", "unknown": 1}},
        ]}
        assert client.post("/api/charts/acme-corp/update-nodes", json=body).json()["updated"] == 2

    def test_update_node_color(self, client):
        client.post("/api/charts/acme-corp/update-node-color", json={"id": 4, "color": "#FFFFFF"})
        node = next(n for n in client.get("/api/charts/acme-corp/nodes").json() if n["id"] == 4)
        assert (node["color"], node["textColor"]) == ("#FFFFFF", "white")

    def test_delete_node_cascades(self, client):
        body = client.delete("/api/charts/acme-corp/delete-node", params={"id": 2}).json()
        assert body["deleted"] == 4
        assert body["ids"] == [2, 5, 8, 6]
        assert node_ids(client) == {1, 3, 4, 7}

    def test_delete_missing_node(self, client):
        assert client.delete("/api/charts/acme-corp/delete-node", params={"id": 99}).status_code == 404

    def test_delete_nodes_exact(self, client):
        body = client.post("/api/charts/acme-corp/delete-nodes", json={"ids": [6, 8]}).json()
        assert body["deleted"] == 2
        assert node_ids(client) == {1, 2, 3, 4, 5, 7}


class TestImportExport:

    def test_import_outline_text(self, client):
        text = "1.0 Program\n1.1 Design\nbroken line\n1.1.1 Wireframes"
        body = client.post("/api/charts/acme-corp/import-wbs", json={"text": text}).json()
        assert body == {"success": True, "count": 3, "skippedLines": [3], "orphanedItems": [], "nextId": 2}
        assert node_ids(client) == {"1.0", "1.1", "1.1.1"}
        meta = client.get("/api/charts/acme-corp/meta").json()
        assert meta["nodeCount"] == 3

    def test_import_reports_items_without_parent(self, client):
        body = client.post("/api/charts/acme-corp/import-wbs", json={"text": "1.0 Root\n2.1 Stray"}).json()
        assert body["count"] == 1
        assert body["orphanedItems"] == ["2.1"]
        assert node_ids(client) == {"1.0"}

    def test_import_structured_nodes_with_counter(self, client):
        nodes = [{"id": 1, "name": "Root"}, {"id": 2, "parentId": 1, "name": "Only child"}]
        body = client.post("/api/charts/acme-corp/import-wbs", json={"nodes": nodes, "nextId": 40}).json()
        assert body["nextId"] == 40
        assert node_ids(client) == {1, 2}

    def test_import_without_items(self, client):
        response = client.post("/api/charts/acme-corp/import-wbs", json={"text": "nothing to see"})
        assert response.status_code == 400
        assert response.json()["detail"] == "No valid WBS items found"
        assert len(node_ids(client)) == 8

    def test_import_node_without_id(self, client):
        response = client.post("/api/charts/acme-corp/import-wbs", json={"nodes": [{"name": "no id"}]})
        assert response.status_code == 400

    def test_export_nested_attachment(self, client):
        response = client.get("/api/charts/acme-corp/export")
        assert 'filename="acme-corp-tree.json"' in response.headers["content-disposition"]
        assert response.json()["children"][0]["additionalInfo"] == "Chief Technology Officer"

    def test_export_flat(self, client):
        response = client.get("/api/charts/acme-corp/export", params={"flat": "true"})
        assert 'filename="acme-corp-records.json"' in response.headers["content-disposition"]
        assert len(response.json()) == 8


class TestUnseeded:

    def test_starts_empty(self):
        with TestClient(create_app(backend=make_backend(seed=False))) as client:
            assert client.get("/api/charts").json() == []
