from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from workflow_guard.domain.value_objects.node_type_info import NodeCategory
from workflow_guard.infrastructure.definitions.yaml_node_type_catalog import (
    DEFAULT_DEFINITIONS_DIR,
    NodeDefinitionLoadError,
    YamlNodeTypeCatalog,
)


def _write(directory: Path, filename: str, text: str) -> Path:
    path = directory / filename
    path.write_text(text, encoding="utf-8")
    return path


def test_catalog_loads_bundled_definitions(catalog) -> None:
    assert len(catalog) > 0
    assert "nodes-base.slack" in catalog.known_types()
    assert "nodes-langchain.agent" in catalog.known_types()
    assert len(list(DEFAULT_DEFINITIONS_DIR.glob("*.yaml"))) == 2


@pytest.mark.parametrize(
    "node_type",
    ["n8n-nodes-base.webhook", "nodes-base.webhook", "@n8n/n8n-nodes-langchain.chatTrigger"],
)
def test_lookup_normalizes_type(catalog, node_type) -> None:
    info = catalog.lookup(node_type)

    assert info.known is True
    assert info.is_trigger is True
    assert info.is_webhook is True


def test_lookup_unknown_type(catalog) -> None:
    info = catalog.lookup("n8n-nodes-acme.widget")

    assert info.known is False
    assert info.node_type == "n8n-nodes-acme.widget"
    assert info.required_parameters == ()


def test_bundled_definitions_declare_credentials_and_categories(catalog) -> None:
    assert catalog.lookup("@n8n/n8n-nodes-langchain.lmChatOpenAi").required_credentials == ("openAiApi",)
    assert catalog.lookup("n8n-nodes-base.slack").is_ai_tool is True
    assert catalog.lookup("n8n-nodes-base.slack").category is NodeCategory.MESSAGING


def test_conditional_required_parameters(catalog) -> None:
    info = catalog.lookup("n8n-nodes-base.telegram")

    assert info.required_parameters_for({"resource": "message", "operation": "sendPhoto"}) == ["chatId"]
    assert info.required_parameters_for({"resource": "chat", "operation": "get"}) == []


def test_custom_definitions_dir(tmp_path) -> None:
    _write(
        tmp_path,
        "acme.yaml",
        "package: n8n-nodes-acme\n"
        "nodes:\n"
        "  widget:\n"
        "    display_name: Widget\n"
        "    category: transform\n"
        "    required_parameters:\n"
        "      - size\n"
        "      - name: color\n"
        "        when: {mode: paint}\n",
    )

    catalog = YamlNodeTypeCatalog(definitions_dir=tmp_path)
    info = catalog.lookup("n8n-nodes-acme.widget")

    assert len(catalog) == 1
    assert info.display_name == "Widget"
    assert info.category is NodeCategory.TRANSFORM
    assert info.required_parameters_for({"mode": "paint"}) == ["size", "color"]
    assert info.required_parameters_for({"mode": "draw"}) == ["size"]


def test_from_settings_uses_configured_dir(tmp_path) -> None:
    _write(tmp_path, "acme.yaml", "package: n8n-nodes-acme\nnodes:\n  widget: {}\n")

    catalog = YamlNodeTypeCatalog.from_settings(SimpleNamespace(node_definitions_dir=str(tmp_path)))

    assert catalog.known_types() == ["n8n-nodes-acme.widget"]


def test_from_settings_defaults_to_bundled_dir() -> None:
    catalog = YamlNodeTypeCatalog.from_settings(SimpleNamespace(node_definitions_dir=None))

    assert "nodes-base.webhook" in catalog.known_types()


def test_missing_definitions_dir(tmp_path) -> None:
    with pytest.raises(NodeDefinitionLoadError, match="does not exist"):
        YamlNodeTypeCatalog(definitions_dir=tmp_path / "missing")


@pytest.mark.parametrize(
    ("text", "match"),
    [
        ("package: [unclosed\n", "yaml parse error"),
        ("- just\n- a list\n", "top-level YAML must be a mapping"),
        ("nodes: {}\n", "missing required key: package"),
        ("package: nodes-base\nnodes: [a, b]\n", "nodes must be a mapping"),
        ("package: nodes-base\nnodes:\n  x: {category: nonsense}\n", "nodes-base.x"),
        ("package: nodes-base\nnodes:\n  x: {required_credentials: api}\n", "required_credentials"),
        ("package: nodes-base\nnodes:\n  x: {required_parameters: [{when: {a: b}}]}\n", "required_parameters"),
    ],
)
def test_malformed_definitions_fail_at_load(tmp_path, text, match) -> None:
    _write(tmp_path, "bad.yaml", text)

    with pytest.raises(NodeDefinitionLoadError, match=match) as exc_info:
        YamlNodeTypeCatalog(definitions_dir=tmp_path)

    assert exc_info.value.source_path.name == "bad.yaml"


def test_duplicate_type_across_files(tmp_path) -> None:
    _write(tmp_path, "a.yaml", "package: nodes-base\nnodes:\n  set: {}\n")
    _write(tmp_path, "b.yaml", "package: n8n-nodes-base\nnodes:\n  set: {}\n")

    with pytest.raises(NodeDefinitionLoadError, match="duplicate node type: nodes-base.set"):
        YamlNodeTypeCatalog(definitions_dir=tmp_path)
