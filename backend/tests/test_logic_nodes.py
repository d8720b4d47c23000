"""Tests for the condition and split-path nodes."""

import random

import pytest

from core.constants import EdgeHandle
from fakes import make_context
from nodes.implementations.logic import ConditionNode, SplitPathNode, evaluate_condition

CONTACT = {
    "id": "c-1",
    "name": "Maria Silva",
    "tags": ["Lead", "vip"],
    "custom_fields": {"city": "Lisbon"},
}


@pytest.mark.unit
class TestEvaluateCondition:
    def test_scalar_operators(self):
        assert evaluate_condition("Lisbon", "equals", "lisbon") is True
        assert evaluate_condition("Lisbon", "contains", "LIS") is True
        assert evaluate_condition("Lisbon", "not_contains", "porto") is True
        assert evaluate_condition("Lisbon", "equals", "Porto") is False

    def test_list_membership(self):
        assert evaluate_condition(["Lead", "vip"], "contains", "lead") is True
        assert evaluate_condition(["Lead", "vip"], "not_contains", "lead") is False
        assert evaluate_condition(["Lead", "vip"], "not_contains", "cold") is True

    def test_list_equals_behaves_like_contains(self):
        assert evaluate_condition(["lead", "vip"], "equals", "vip") is True

    def test_unknown_operator_never_matches(self):
        assert evaluate_condition("x", "starts_with", "x") is False
        assert evaluate_condition(["x"], None, "x") is False

    def test_missing_source_compares_as_empty(self):
        assert evaluate_condition(None, "equals", "") is True
        assert evaluate_condition(None, "contains", "x") is False


@pytest.mark.unit
class TestConditionNode:
    async def test_yes_branch(self):
        ctx = make_context(
            "condition",
            {"field": "{{contact.tags}}", "operator": "contains", "value": "lead"},
            contact=CONTACT,
        )
        result = await ConditionNode()(ctx)

        assert result.next_node_handle == EdgeHandle.YES
        assert result.details.endswith("Result: Yes")
        assert "'contact.tags'" in result.details

    async def test_no_branch(self):
        ctx = make_context(
            "condition",
            {"field": "contact.custom_fields.city", "operator": "equals", "value": "Porto"},
            contact=CONTACT,
        )
        result = await ConditionNode()(ctx)

        assert result.next_node_handle == EdgeHandle.NO
        assert result.details.endswith("Result: No")

    async def test_value_is_resolved_against_trigger(self):
        ctx = make_context(
            "condition",
            {"field": "contact.custom_fields.city", "operator": "equals", "value": "{{trigger.city}}"},
            contact=CONTACT,
            trigger={"city": "LISBON"},
        )
        result = await ConditionNode()(ctx)
        assert result.next_node_handle == EdgeHandle.YES

    async def test_unknown_operator_takes_no(self):
        ctx = make_context(
            "condition",
            {"field": "contact.name", "operator": "matches", "value": "Maria"},
            contact=CONTACT,
        )
        result = await ConditionNode()(ctx)
        assert result.next_node_handle == EdgeHandle.NO

    async def test_does_not_touch_contact(self):
        ctx = make_context("condition", {"field": "contact.name", "operator": "equals"}, contact=CONTACT)
        result = await ConditionNode()(ctx)
        assert result.updated_contact is None


@pytest.mark.unit
class TestSplitPathNode:
    async def test_chooser_picks_branch(self):
        ctx = make_context("split_path")

        low = await SplitPathNode(chooser=lambda: 0.1)(ctx)
        high = await SplitPathNode(chooser=lambda: 0.5)(ctx)

        assert low.next_node_handle == EdgeHandle.A
        assert low.details == "Path split randomly to branch A."
        assert high.next_node_handle == EdgeHandle.B
        assert high.details == "Path split randomly to branch B."

    async def test_distribution_is_roughly_even(self):
        node = SplitPathNode(chooser=random.Random(1234).random)
        ctx = make_context("split_path")

        trials = 10_000
        a_count = 0
        for _ in range(trials):
            result = await node.execute(ctx, None)
            if result.next_node_handle == EdgeHandle.A:
                a_count += 1

        assert 0.45 * trials <= a_count <= 0.55 * trials
