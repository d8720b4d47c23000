"""Tests for the contact action nodes."""

import pytest

from core.exceptions import ContactRequiredError, InvalidNodeConfigError, NodeExecutionError
from fakes import make_context
from nodes.implementations.contact import AddTagNode, RemoveTagNode, SetCustomFieldNode


@pytest.mark.unit
class TestAddTagNode:
    async def test_adds_tag_and_publishes_event(self, services, contact, profile):
        ctx = make_context("add_tag", {"tag": "customer"}, contact=contact, profile=profile)

        result = await AddTagNode(services)(ctx)

        assert result.updated_contact["tags"] == ["lead", "vip", "customer"]
        assert result.details == "Tag 'customer' added to contact."
        assert services.contacts.updates == [
            {"contact_id": "contact-1", "tags": ["lead", "vip", "customer"], "custom_fields": None}
        ]
        event_type, profile_id, data = services.events.events[0]
        assert event_type == "tag_added"
        assert profile_id == "user-1"
        assert data["tag"] == "customer"

    async def test_existing_tag_is_a_no_op(self, services, contact):
        ctx = make_context("add_tag", {"tag": "vip"}, contact=contact)

        result = await AddTagNode(services)(ctx)

        assert result.details == "Contact already has tag 'vip'. No action taken."
        assert result.updated_contact == contact
        assert services.contacts.updates == []
        assert services.events.events == []

    async def test_tag_is_resolved(self, services, contact):
        ctx = make_context("add_tag", {"tag": "city-{{contact.custom_fields.city}}"}, contact=contact)
        result = await AddTagNode(services)(ctx)
        assert "city-Lisbon" in result.updated_contact["tags"]

    async def test_missing_contact_record(self, services):
        ctx = make_context("add_tag", {"tag": "x"}, contact={"id": "ghost", "tags": []})
        with pytest.raises(NodeExecutionError, match="Failed to update contact after adding tag."):
            await AddTagNode(services)(ctx)

    async def test_requires_contact(self, services):
        with pytest.raises(ContactRequiredError):
            await AddTagNode(services)(make_context("add_tag", {"tag": "x"}))

    async def test_requires_tag(self, services, contact):
        with pytest.raises(InvalidNodeConfigError):
            await AddTagNode(services)(make_context("add_tag", {"tag": ""}, contact=contact))


@pytest.mark.unit
class TestRemoveTagNode:
    async def test_removes_tag(self, services, contact):
        ctx = make_context("remove_tag", {"tag": "lead"}, contact=contact)

        result = await RemoveTagNode(services)(ctx)

        assert result.updated_contact["tags"] == ["vip"]
        assert result.details == "Tag 'lead' removed from contact."

    async def test_absent_tag_still_succeeds(self, services, contact):
        ctx = make_context("remove_tag", {"tag": "cold"}, contact=contact)
        result = await RemoveTagNode(services)(ctx)
        assert result.updated_contact["tags"] == ["lead", "vip"]


@pytest.mark.unit
class TestSetCustomFieldNode:
    async def test_sets_field(self, services, contact):
        ctx = make_context(
            "set_custom_field",
            {"field_name": "favourite color", "field_value": "blue"},
            contact=contact,
        )

        result = await SetCustomFieldNode(services)(ctx)

        assert result.updated_contact["custom_fields"] == {
            "city": "Lisbon", "plan": "gold", "favourite_color": "blue",
        }
        assert result.details == "Field 'favourite_color' set to 'blue'."

    async def test_value_is_resolved(self, services, contact):
        ctx = make_context(
            "set_custom_field",
            {"field_name": "source", "field_value": "{{trigger.channel}}"},
            contact=contact,
            trigger={"channel": "whatsapp"},
        )
        result = await SetCustomFieldNode(services)(ctx)
        assert result.updated_contact["custom_fields"]["source"] == "whatsapp"
