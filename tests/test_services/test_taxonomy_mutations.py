"""Tests for TaxonomyMutations."""

import pytest

from spm_service.core.errors import (
    AlreadyActiveError,
    AlreadyInactiveError,
    HasChildrenError,
    NoChangesError,
    NotFoundError,
    ParentInactiveError,
    ValidationError,
)
from spm_service.core.store import NODES
from spm_service.schemas.taxonomy import (
    CategoryCreate,
    LineCreate,
    NodeUpdate,
    PortfolioCreate,
    parse_node,
)


class TestCreate:
    """Tests for node creation."""

    @pytest.mark.asyncio
    async def test_create_portfolio_starts_at_version_one(self, store, builder):
        """Scenario: a new portfolio has version 1 and a single creation entry."""
        portfolio_id = await builder.portfolio("Core")

        node = await store.get(NODES, portfolio_id)
        assert node["type"] == "portfolio"
        assert node["parent_id"] is None
        assert node["version"] == 1
        assert len(node["change_history"]) == 1
        assert node["change_history"][0]["changes"] == {"created": True}
        assert node["change_history"][0]["reason"] == "Initial creation"
        assert node["updated_by"] == "tester"

    @pytest.mark.asyncio
    async def test_create_line_under_portfolio(self, store, builder):
        portfolio_id = await builder.portfolio()
        line_id = await builder.line(portfolio_id)

        node = await store.get(NODES, line_id)
        assert node["parent_id"] == portfolio_id

    @pytest.mark.asyncio
    async def test_create_line_without_parent_fails(self, store, builder):
        """Scenario: a line with a null parent is rejected."""
        with pytest.raises(ValidationError, match="line nodes must have a parent"):
            await builder.line(None)  # type: ignore[arg-type]

        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_create_portfolio_with_parent_fails(self, builder):
        portfolio_id = await builder.portfolio()

        with pytest.raises(ValidationError, match="Portfolios cannot have parent nodes"):
            await builder.node("portfolio", "Nested", portfolio_id)

    @pytest.mark.asyncio
    async def test_create_with_missing_parent_fails(self, builder):
        with pytest.raises(ValidationError, match="Parent node not found"):
            await builder.line("does-not-exist")

    @pytest.mark.asyncio
    async def test_create_category_under_portfolio_fails(self, builder):
        portfolio_id = await builder.portfolio()

        with pytest.raises(ValidationError, match="Category must have product line parent"):
            await builder.category(portfolio_id)

    @pytest.mark.asyncio
    async def test_create_line_under_line_fails(self, builder, tree):
        with pytest.raises(ValidationError, match="Product line must have portfolio parent"):
            await builder.line(tree["line"], "Nested Line")

    @pytest.mark.asyncio
    async def test_create_touches_parent_without_bumping_version(self, store, builder):
        portfolio_id = await builder.portfolio()
        before = await store.get(NODES, portfolio_id)

        await builder.line(portfolio_id)

        after = await store.get(NODES, portfolio_id)
        assert after["last_modified"] >= before["last_modified"]
        assert after["version"] == 1
        assert len(after["change_history"]) == 1


class TestTypedConstructors:
    """Tests for create_portfolio / create_line / create_category."""

    @pytest.mark.asyncio
    async def test_typed_chain(self, store, mutations):
        portfolio_id = await mutations.create_portfolio(
            PortfolioCreate(name="Core", description="Core portfolio", created_by="alice")
        )
        line_id = await mutations.create_line(
            LineCreate(
                name="Apps", description="Application line", parent_id=portfolio_id, created_by="alice"
            )
        )
        category_id = await mutations.create_category(
            CategoryCreate(
                name="Mobile", description="Mobile category", parent_id=line_id, created_by="alice"
            )
        )

        category = await store.get(NODES, category_id)
        assert category["type"] == "category"
        assert category["change_history"][0]["reason"] == "Category creation"
        line = await store.get(NODES, line_id)
        assert line["change_history"][0]["reason"] == "Product line creation"
        portfolio = await store.get(NODES, portfolio_id)
        assert portfolio["change_history"][0]["reason"] == "Portfolio creation"

    @pytest.mark.asyncio
    async def test_create_line_requires_portfolio_parent(self, mutations, tree):
        with pytest.raises(ValidationError, match="Product line must have a portfolio parent"):
            await mutations.create_line(
                LineCreate(
                    name="Apps", description="Application line", parent_id=tree["line"], created_by="a"
                )
            )

    @pytest.mark.asyncio
    async def test_create_category_requires_line_parent(self, mutations, tree):
        with pytest.raises(ValidationError, match="Category must have a product line parent"):
            await mutations.create_category(
                CategoryCreate(
                    name="Mobile",
                    description="Mobile category",
                    parent_id=tree["portfolio"],
                    created_by="a",
                )
            )


class TestUpdate:
    """Tests for update."""

    @pytest.mark.asyncio
    async def test_update_records_changes(self, store, mutations, tree):
        result = await mutations.update(
            tree["line"], NodeUpdate(name="Renamed Line"), updated_by="bob", reason="rename"
        )

        assert result.success is True
        assert result.changes == {"name": {"from": "Customer Apps", "to": "Renamed Line"}}

        node = await store.get(NODES, tree["line"])
        assert node["name"] == "Renamed Line"
        assert node["version"] == 2
        assert node["updated_by"] == "bob"
        assert node["change_history"][-1]["reason"] == "rename"
        assert node["change_history"][-1]["changes"]["name"]["to"] == "Renamed Line"

    @pytest.mark.asyncio
    async def test_same_payload_twice_raises_no_changes(self, mutations, tree):
        updates = NodeUpdate(description="A brand new description")
        await mutations.update(tree["line"], updates, updated_by="bob")

        with pytest.raises(NoChangesError, match="No changes detected"):
            await mutations.update(tree["line"], updates, updated_by="bob")

    @pytest.mark.asyncio
    async def test_update_missing_node(self, mutations):
        with pytest.raises(NotFoundError, match="Node not found"):
            await mutations.update("missing", NodeUpdate(name="Anything"), updated_by="bob")

    @pytest.mark.asyncio
    async def test_update_parent_to_valid_line(self, store, builder, mutations, tree):
        other_line = await builder.line(tree["portfolio"], "Other Line")

        result = await mutations.update(
            tree["category"], NodeUpdate(parent_id=other_line), updated_by="bob"
        )

        assert result.changes["parent_id"] == {"from": tree["line"], "to": other_line}
        node = await store.get(NODES, tree["category"])
        assert node["parent_id"] == other_line

    @pytest.mark.asyncio
    async def test_update_parent_to_wrong_type_fails(self, store, mutations, tree):
        with pytest.raises(ValidationError):
            await mutations.update(
                tree["category"], NodeUpdate(parent_id=tree["portfolio"]), updated_by="bob"
            )

        node = await store.get(NODES, tree["category"])
        assert node["version"] == 1

    @pytest.mark.asyncio
    async def test_update_parent_into_own_subtree_fails(self, mutations, tree):
        with pytest.raises(ValidationError, match="circular reference"):
            await mutations.update(
                tree["line"], NodeUpdate(parent_id=tree["category"]), updated_by="bob"
            )

    @pytest.mark.asyncio
    async def test_version_and_history_track_mutation_count(self, store, mutations, tree):
        """After N mutations: version == 1 + N and history == 1 + N entries."""
        await mutations.update(tree["line"], NodeUpdate(name="First Name"), updated_by="u")
        await mutations.update(tree["line"], NodeUpdate(name="Second Name"), updated_by="u")
        await mutations.deactivate(tree["line"], updated_by="u")
        await mutations.reactivate(tree["line"], updated_by="u")

        node = await store.get(NODES, tree["line"])
        assert node["version"] == 5
        assert len(node["change_history"]) == 5


class TestMoveNode:
    """Tests for move_node."""

    @pytest.mark.asyncio
    async def test_move_category_to_other_line(self, store, builder, mutations, tree):
        other_line = await builder.line(tree["portfolio"], "Other Line")

        result = await mutations.move_node(tree["category"], other_line, updated_by="carol")

        assert result.changes == {"parent_id": {"from": tree["line"], "to": other_line}}
        node = await store.get(NODES, tree["category"])
        assert node["parent_id"] == other_line
        assert node["version"] == 2
        assert node["change_history"][-1]["reason"] == "Node moved in hierarchy"

    @pytest.mark.asyncio
    async def test_portfolio_cannot_move(self, mutations, tree):
        """Scenario: moving a portfolio under its own line is rejected as a portfolio move."""
        with pytest.raises(ValidationError, match="Portfolios cannot be moved"):
            await mutations.move_node(tree["portfolio"], tree["line"], updated_by="carol")

    @pytest.mark.asyncio
    async def test_move_to_same_parent_fails(self, mutations, tree):
        with pytest.raises(ValidationError, match="already in the specified location"):
            await mutations.move_node(tree["category"], tree["line"], updated_by="carol")

    @pytest.mark.asyncio
    async def test_move_under_self_fails(self, mutations, tree):
        with pytest.raises(ValidationError, match="circular reference"):
            await mutations.move_node(tree["line"], tree["line"], updated_by="carol")

    @pytest.mark.asyncio
    async def test_move_line_under_other_portfolio(self, store, builder, mutations, tree):
        other_portfolio = await builder.portfolio("Other Portfolio")

        await mutations.move_node(tree["line"], other_portfolio, updated_by="carol")

        node = await store.get(NODES, tree["line"])
        assert node["parent_id"] == other_portfolio

    @pytest.mark.asyncio
    async def test_move_to_wrong_parent_type_fails(self, builder, mutations, tree):
        other_portfolio = await builder.portfolio("Other Portfolio")

        with pytest.raises(ValidationError, match="Category must have product line parent"):
            await mutations.move_node(tree["category"], other_portfolio, updated_by="carol")

    @pytest.mark.asyncio
    async def test_move_missing_node(self, mutations):
        with pytest.raises(NotFoundError):
            await mutations.move_node("missing", "anything", updated_by="carol")


class TestDeactivate:
    """Tests for deactivate and reactivate."""

    @pytest.mark.asyncio
    async def test_cascade_deactivates_active_child(self, store, builder, mutations):
        """Scenario: cascading from P with one active child L deactivates both."""
        portfolio_id = await builder.portfolio()
        line_id = await builder.line(portfolio_id)

        result = await mutations.deactivate(portfolio_id, updated_by="dave", cascade_to_children=True)

        assert result.deactivated_count == 2
        assert (await store.get(NODES, portfolio_id))["is_active"] is False
        line = await store.get(NODES, line_id)
        assert line["is_active"] is False
        assert line["change_history"][-1]["reason"] == "Cascaded deactivation from parent"

    @pytest.mark.asyncio
    async def test_cascade_reaches_every_active_descendant(self, store, builder, mutations, tree):
        """Inactive descendants are left untouched but active nodes below them are reached."""
        second_category = await builder.category(tree["line"], "Web Apps")
        await mutations.deactivate(tree["line"], updated_by="dave")
        line_before = await store.get(NODES, tree["line"])

        result = await mutations.deactivate(tree["portfolio"], updated_by="dave", cascade_to_children=True)

        assert result.deactivated_count == 3
        for node_id in (tree["portfolio"], tree["category"], second_category):
            assert (await store.get(NODES, node_id))["is_active"] is False
        line_after = await store.get(NODES, tree["line"])
        assert line_after["version"] == line_before["version"]
        assert len(line_after["change_history"]) == len(line_before["change_history"])

    @pytest.mark.asyncio
    async def test_deactivate_without_cascade_leaves_children(self, store, mutations, tree):
        result = await mutations.deactivate(tree["line"], updated_by="dave")

        assert result.deactivated_count == 1
        assert (await store.get(NODES, tree["category"]))["is_active"] is True

    @pytest.mark.asyncio
    async def test_deactivate_inactive_node_fails(self, mutations, tree):
        await mutations.deactivate(tree["category"], updated_by="dave")

        with pytest.raises(AlreadyInactiveError):
            await mutations.deactivate(tree["category"], updated_by="dave")

    @pytest.mark.asyncio
    async def test_reactivate(self, store, mutations, tree):
        await mutations.deactivate(tree["category"], updated_by="dave")

        result = await mutations.reactivate(tree["category"], updated_by="erin")

        assert result.success is True
        node = await store.get(NODES, tree["category"])
        assert node["is_active"] is True
        assert node["change_history"][-1]["reason"] == "Node reactivated"

    @pytest.mark.asyncio
    async def test_reactivate_active_node_fails(self, mutations, tree):
        with pytest.raises(AlreadyActiveError):
            await mutations.reactivate(tree["category"], updated_by="erin")

    @pytest.mark.asyncio
    async def test_reactivate_under_inactive_parent_fails(self, mutations, tree):
        await mutations.deactivate(tree["line"], updated_by="dave", cascade_to_children=True)

        with pytest.raises(ParentInactiveError):
            await mutations.reactivate(tree["category"], updated_by="erin")


class TestDeleteNode:
    """Tests for delete_node."""

    @pytest.mark.asyncio
    async def test_delete_leaf(self, store, mutations, tree):
        result = await mutations.delete_node(tree["category"], updated_by="frank")

        assert result.deleted_count == 1
        assert await store.get(NODES, tree["category"]) is None

    @pytest.mark.asyncio
    async def test_delete_with_children_requires_force(self, store, mutations, tree):
        """Scenario: the unforced delete leaves the store unchanged."""
        snapshot = {
            node_id: await store.get(NODES, node_id) for node_id in tree.values()
        }

        with pytest.raises(HasChildrenError):
            await mutations.delete_node(tree["line"], updated_by="frank")

        for node_id, document in snapshot.items():
            assert await store.get(NODES, node_id) == document

    @pytest.mark.asyncio
    async def test_force_delete_removes_subtree(self, store, mutations, tree):
        result = await mutations.delete_node(tree["line"], updated_by="frank", force_delete=True)

        assert result.deleted_count == 2
        assert await store.get(NODES, tree["line"]) is None
        assert await store.get(NODES, tree["category"]) is None
        assert await store.get(NODES, tree["portfolio"]) is not None

    @pytest.mark.asyncio
    async def test_delete_missing_node(self, mutations):
        with pytest.raises(NotFoundError):
            await mutations.delete_node("missing", updated_by="frank")


class TestInvariants:
    """Structural properties that hold after any sequence of operations."""

    @pytest.mark.asyncio
    async def test_tree_invariants_hold(self, store, builder, mutations, queries, tree):
        other_line = await builder.line(tree["portfolio"], "Other Line")
        await mutations.move_node(tree["category"], other_line, updated_by="u")
        await mutations.update(tree["line"], NodeUpdate(name="Renamed"), updated_by="u")

        documents = await store.query(NODES).collect()
        by_id = {doc["id"]: doc for doc in documents}

        for doc in documents:
            node = parse_node(doc)
            assert (node.type == "portfolio") == (node.parent_id is None)
            if node.type == "line":
                assert by_id[node.parent_id]["type"] == "portfolio"
            if node.type == "category":
                assert by_id[node.parent_id]["type"] == "line"
            result = await queries.check_circular_reference(node.id, node.parent_id)
            assert result.has_circular_reference is False

