"""Tests for the taxonomy endpoints."""

import pytest
from httpx import AsyncClient

from spm_service.core.store import NODES


def _body(name: str, **extra) -> dict:
    return {"name": name, "description": f"{name} description", "created_by": "api-user", **extra}


@pytest.fixture
async def api_tree(client: AsyncClient) -> dict[str, str]:
    portfolio = await client.post("/taxonomy/portfolios", json=_body("Core"))
    line = await client.post(
        "/taxonomy/lines", json=_body("Customer Apps", parent_id=portfolio.json()["node_id"])
    )
    category = await client.post(
        "/taxonomy/categories", json=_body("Mobile Apps", parent_id=line.json()["node_id"])
    )
    return {
        "portfolio": portfolio.json()["node_id"],
        "line": line.json()["node_id"],
        "category": category.json()["node_id"],
    }


class TestCreateEndpoints:
    """Tests for node creation routes."""

    @pytest.mark.asyncio
    async def test_create_portfolio(self, client: AsyncClient):
        response = await client.post("/taxonomy/portfolios", json=_body("Core"))

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["node_id"]

    @pytest.mark.asyncio
    async def test_hierarchy_violation_is_400(self, client: AsyncClient, api_tree):
        response = await client.post(
            "/taxonomy/nodes",
            json=_body("Misplaced", type="category", parent_id=api_tree["portfolio"]),
        )

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Category must have product line parent",
            "error_type": "ValidationError",
        }

    @pytest.mark.asyncio
    async def test_malformed_body_is_422(self, client: AsyncClient):
        response = await client.post("/taxonomy/portfolios", json=_body("X"))

        assert response.status_code == 422


class TestMutationEndpoints:
    """Tests for update, move, activation and delete routes."""

    @pytest.mark.asyncio
    async def test_update(self, client: AsyncClient, api_tree):
        response = await client.patch(
            f"/taxonomy/nodes/{api_tree['line']}",
            json={"updates": {"name": "Customer Channels"}, "updated_by": "editor"},
        )

        assert response.status_code == 200
        assert response.json()["changes"] == {
            "name": {"from": "Customer Apps", "to": "Customer Channels"}
        }

    @pytest.mark.asyncio
    async def test_update_without_changes_is_409(self, client: AsyncClient, api_tree):
        response = await client.patch(
            f"/taxonomy/nodes/{api_tree['line']}",
            json={"updates": {"name": "Customer Apps"}, "updated_by": "editor"},
        )

        assert response.status_code == 409
        assert response.json()["error_type"] == "NoChangesError"

    @pytest.mark.asyncio
    async def test_update_type_is_rejected(self, client: AsyncClient, api_tree):
        response = await client.patch(
            f"/taxonomy/nodes/{api_tree['line']}",
            json={"updates": {"type": "category"}, "updated_by": "editor"},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_move_into_own_subtree_is_400(self, client: AsyncClient, api_tree):
        response = await client.post(
            f"/taxonomy/nodes/{api_tree['line']}/move",
            json={"new_parent_id": api_tree["category"], "updated_by": "editor"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Cannot create circular reference in hierarchy"

    @pytest.mark.asyncio
    async def test_deactivate_cascade_then_conflicts(self, client: AsyncClient, api_tree):
        url = f"/taxonomy/nodes/{api_tree['portfolio']}/deactivate"
        first = await client.post(url, json={"updated_by": "editor", "cascade_to_children": True})
        second = await client.post(url, json={"updated_by": "editor"})
        reactivate_child = await client.post(
            f"/taxonomy/nodes/{api_tree['line']}/reactivate", json={"updated_by": "editor"}
        )

        assert first.status_code == 200
        assert first.json()["deactivated_count"] == 3
        assert second.status_code == 409
        assert second.json()["error"] == "Node is already inactive"
        assert reactivate_child.status_code == 409
        assert reactivate_child.json()["error_type"] == "ParentInactiveError"

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, api_tree):
        url = f"/taxonomy/nodes/{api_tree['portfolio']}"
        blocked = await client.delete(url, params={"updated_by": "editor"})
        forced = await client.delete(url, params={"updated_by": "editor", "force_delete": "true"})
        gone = await client.get(url)

        assert blocked.status_code == 409
        assert blocked.json()["error_type"] == "HasChildrenError"
        assert forced.status_code == 200
        assert forced.json() == {"success": True, "deleted_count": 3}
        assert gone.status_code == 404
        assert gone.json()["error"] == "Node not found"

    @pytest.mark.asyncio
    async def test_delete_requires_actor(self, client: AsyncClient, api_tree):
        response = await client.delete(f"/taxonomy/nodes/{api_tree['category']}")

        assert response.status_code == 422


class TestQueryEndpoints:
    """Tests for read routes."""

    @pytest.mark.asyncio
    async def test_hierarchy(self, client: AsyncClient, api_tree):
        response = await client.get("/taxonomy/hierarchy")

        assert response.status_code == 200
        roots = response.json()
        assert len(roots) == 1
        assert roots[0]["id"] == api_tree["portfolio"]
        assert roots[0]["children"][0]["children"][0]["id"] == api_tree["category"]

    @pytest.mark.asyncio
    async def test_breadcrumb(self, client: AsyncClient, api_tree):
        response = await client.get(f"/taxonomy/nodes/{api_tree['category']}/breadcrumb")

        assert [node["name"] for node in response.json()] == ["Core", "Customer Apps", "Mobile Apps"]

    @pytest.mark.asyncio
    async def test_breadcrumb_unknown_node_is_empty(self, client: AsyncClient):
        response = await client.get("/taxonomy/nodes/missing/breadcrumb")

        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_reads_tolerate_portfolio_with_dangling_parent(
        self, client: AsyncClient, store, api_tree
    ):
        await store.patch(NODES, api_tree["portfolio"], {"parent_id": "gone"})

        crumbs = await client.get(f"/taxonomy/nodes/{api_tree['category']}/breadcrumb")
        node = await client.get(f"/taxonomy/nodes/{api_tree['portfolio']}")

        assert crumbs.status_code == 200
        assert [item["name"] for item in crumbs.json()] == ["Core", "Customer Apps", "Mobile Apps"]
        assert node.status_code == 200
        assert node.json()["parent_id"] == "gone"

    @pytest.mark.asyncio
    async def test_search_with_type_filter(self, client: AsyncClient, api_tree):
        response = await client.get("/taxonomy/search", params={"term": "apps", "type": "line"})

        assert [node["id"] for node in response.json()] == [api_tree["line"]]

    @pytest.mark.asyncio
    async def test_circular_reference_check(self, client: AsyncClient, api_tree):
        response = await client.get(
            "/taxonomy/circular-reference",
            params={"node_id": api_tree["portfolio"], "new_parent_id": api_tree["category"]},
        )

        assert response.json() == {"has_circular_reference": True}

    @pytest.mark.asyncio
    async def test_validate_parent_child(self, client: AsyncClient, api_tree):
        response = await client.get(
            "/taxonomy/validate-parent-child",
            params={"child_type": "line", "parent_id": api_tree["line"]},
        )

        assert response.json() == {"valid": False, "reason": "Product line must have portfolio parent"}

    @pytest.mark.asyncio
    async def test_listings(self, client: AsyncClient, api_tree):
        portfolios = await client.get("/taxonomy/portfolios")
        lines = await client.get("/taxonomy/lines", params={"portfolio_id": api_tree["portfolio"]})
        children = await client.get(f"/taxonomy/nodes/{api_tree['line']}/children")
        by_name = await client.get("/taxonomy/by-name", params={"name": "Mobile Apps"})

        assert [n["id"] for n in portfolios.json()] == [api_tree["portfolio"]]
        assert [n["id"] for n in lines.json()] == [api_tree["line"]]
        assert [n["id"] for n in children.json()] == [api_tree["category"]]
        assert by_name.json()["id"] == api_tree["category"]


class TestMaintenanceEndpoints:
    """Tests for import, export, metrics, checks and suggestions."""

    @pytest.mark.asyncio
    async def test_import(self, client: AsyncClient):
        response = await client.post(
            "/taxonomy/import",
            json={
                "imported_by": "importer",
                "nodes": [
                    {"name": "Apps", "description": "Apps imported node", "type": "line", "parent_name": "Digital"},
                    {"name": "Digital", "description": "Digital imported node", "type": "portfolio"},
                ],
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success_count"] == 2
        assert data["error_count"] == 0

    @pytest.mark.asyncio
    async def test_export_json(self, client: AsyncClient, api_tree):
        response = await client.get("/taxonomy/export")

        data = response.json()
        assert data["format"] == "json"
        assert data["count"] == 3

    @pytest.mark.asyncio
    async def test_export_csv(self, client: AsyncClient, api_tree):
        response = await client.get("/taxonomy/export", params={"format": "csv"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().splitlines()
        assert lines[0].startswith("Name,Description,Type")
        assert len(lines) == 4

    @pytest.mark.asyncio
    async def test_metrics(self, client: AsyncClient, api_tree):
        found = await client.get("/taxonomy/metrics")
        missing = await client.get("/taxonomy/metrics", params={"root_node_id": "missing"})

        assert found.json()["total_nodes"] == 3
        assert missing.status_code == 404
        assert missing.json()["error"] == "Root node not found"

    @pytest.mark.asyncio
    async def test_consistency_check_and_cleanup(self, client: AsyncClient, api_tree):
        check = await client.post(
            "/taxonomy/consistency-check",
            json={"check_type": "orphaned_nodes", "triggered_by": "auditor"},
        )
        cleanup = await client.post(
            "/taxonomy/cleanup-orphans", json={"updated_by": "janitor", "dry_run": True}
        )

        assert check.json()["issue_count"] == 0
        assert cleanup.json() == {
            "dry_run": True,
            "orphaned_count": 0,
            "fixed_count": 0,
            "orphaned_nodes": [],
        }

    @pytest.mark.asyncio
    async def test_suggest_category(self, client: AsyncClient, api_tree):
        response = await client.post(
            "/taxonomy/suggest-category",
            json={"product_name": "Mobile Apps Toolkit", "product_description": "android app"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total_categories"] == 1
        assert data["suggestions"][0]["taxonomy_node_id"] == api_tree["category"]
