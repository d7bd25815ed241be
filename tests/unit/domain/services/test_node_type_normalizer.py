import pytest

from workflow_guard.domain.services.node_type_normalizer import (
    detect_package,
    is_trigger_type,
    normalize_node_type,
    short_name,
    to_workflow_format,
)


@pytest.mark.parametrize(
    ("node_type", "expected"),
    [
        ("n8n-nodes-base.slack", "nodes-base.slack"),
        ("@n8n/n8n-nodes-langchain.agent", "nodes-langchain.agent"),
        ("n8n-nodes-langchain.agent", "nodes-langchain.agent"),
        ("nodes-base.slack", "nodes-base.slack"),
        ("n8n-nodes-community.thing", "n8n-nodes-community.thing"),
    ],
)
def test_normalize_node_type(node_type, expected):
    assert normalize_node_type(node_type) == expected


@pytest.mark.parametrize(
    ("node_type", "expected"),
    [
        ("nodes-base.webhook", "n8n-nodes-base.webhook"),
        ("nodes-langchain.agent", "@n8n/n8n-nodes-langchain.agent"),
        ("n8n-nodes-base.webhook", "n8n-nodes-base.webhook"),
    ],
)
def test_to_workflow_format(node_type, expected):
    assert to_workflow_format(node_type) == expected


@pytest.mark.parametrize(
    ("node_type", "expected"),
    [
        ("n8n-nodes-base.set", "base"),
        ("@n8n/n8n-nodes-langchain.lmChatOpenAi", "langchain"),
        ("n8n-nodes-acme.widget", "community"),
        ("set", "unknown"),
    ],
)
def test_detect_package(node_type, expected):
    assert detect_package(node_type) == expected


def test_short_name():
    assert short_name("@n8n/n8n-nodes-langchain.toolHttpRequest") == "toolHttpRequest"


@pytest.mark.parametrize(
    ("node_type", "expected"),
    [
        ("n8n-nodes-base.webhook", True),
        ("@n8n/n8n-nodes-langchain.chatTrigger", True),
        ("n8n-nodes-acme.githubTrigger", True),
        ("n8n-nodes-base.set", False),
    ],
)
def test_is_trigger_type(node_type, expected):
    assert is_trigger_type(node_type) is expected
