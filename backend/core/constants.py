"""Constants and enums for the CRM automation engine."""

from enum import Enum


class AutomationStatus(str, Enum):
    """Activation status of an automation."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class ExecutionStatus(str, Enum):
    """Outcome reported for a run or a node through the lifecycle hooks."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class RunState(str, Enum):
    """States of a single workflow run."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class EdgeHandle(str, Enum):
    """Outcome labels an edge may carry."""

    YES = "yes"
    NO = "no"
    A = "a"
    B = "b"


class NodeKind(str, Enum):
    """Built-in node types."""

    # Triggers
    MESSAGE_RECEIVED_WITH_KEYWORD = "message_received_with_keyword"
    BUTTON_CLICKED = "button_clicked"
    NEW_CONTACT = "new_contact"
    NEW_CONTACT_WITH_TAG = "new_contact_with_tag"
    WEBHOOK_RECEIVED = "webhook_received"
    DEAL_CREATED = "deal_created"
    DEAL_STAGE_CHANGED = "deal_stage_changed"

    # Contact actions
    ADD_TAG = "add_tag"
    REMOVE_TAG = "remove_tag"
    SET_CUSTOM_FIELD = "set_custom_field"

    # Messaging actions
    SEND_TEMPLATE = "send_template"
    SEND_TEXT_MESSAGE = "send_text_message"
    SEND_MEDIA = "send_media"
    SEND_INTERACTIVE_MESSAGE = "send_interactive_message"

    # Integrations
    SEND_WEBHOOK = "send_webhook"

    # Deals
    CREATE_DEAL = "create_deal"
    UPDATE_DEAL_STAGE = "update_deal_stage"

    # Logic
    CONDITION = "condition"
    SPLIT_PATH = "split_path"


TRIGGER_NODE_TYPES = frozenset(kind.value for kind in (
    NodeKind.MESSAGE_RECEIVED_WITH_KEYWORD,
    NodeKind.BUTTON_CLICKED,
    NodeKind.NEW_CONTACT,
    NodeKind.NEW_CONTACT_WITH_TAG,
    NodeKind.WEBHOOK_RECEIVED,
    NodeKind.DEAL_CREATED,
    NodeKind.DEAL_STAGE_CHANGED,
))


class DealStatus(str, Enum):
    """Deal lifecycle status."""

    OPEN = "open"
    WON = "won"
    LOST = "lost"


class CrmEvent(str, Enum):
    """Events published by actions so other automations can react."""

    TAG_ADDED = "tag_added"
    DEAL_CREATED = "deal_created"
    DEAL_STAGE_CHANGED = "deal_stage_changed"
