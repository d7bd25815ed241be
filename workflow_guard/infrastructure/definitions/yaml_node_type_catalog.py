"""YAML-backed NodeTypeCatalog.

Loads every `*.yaml` file from `definitions/nodes` (inside the package, or the
directory configured via `WORKFLOW_GUARD_NODE_DEFINITIONS_DIR`). One file per
package:

    package: nodes-base
    nodes:
      slack:
        display_name: Slack
        category: messaging
        capabilities: [ai_tool]
        required_parameters:
          - name: text
            when: {resource: message, operation: [post]}
        required_credentials: [slackApi]

Malformed files fail at load time with NodeDefinitionLoadError; lookups of
unknown types return NodeTypeInfo.unknown(...) instead of raising.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from workflow_guard.domain.services.node_type_normalizer import normalize_node_type
from workflow_guard.domain.value_objects.node_type_info import (
    NodeCapability,
    NodeCategory,
    NodeTypeInfo,
    RequiredParameter,
)

DEFAULT_DEFINITIONS_DIR = Path(__file__).resolve().parent / "nodes"


class NodeDefinitionLoadError(ValueError):
    def __init__(self, source_path: Path, message: str) -> None:
        super().__init__(f"{source_path}: {message}")
        self.source_path = source_path
        self.message = message


class YamlNodeTypeCatalog:
    def __init__(self, *, definitions_dir: Path | None = None) -> None:
        self._definitions_dir = definitions_dir or DEFAULT_DEFINITIONS_DIR
        self._infos: dict[str, NodeTypeInfo] = {}
        self._load()

    @classmethod
    def from_settings(cls, settings: Any) -> YamlNodeTypeCatalog:
        configured = getattr(settings, "node_definitions_dir", None)
        return cls(definitions_dir=Path(configured) if configured else None)

    def lookup(self, node_type: str) -> NodeTypeInfo:
        normalized = normalize_node_type(node_type)
        return self._infos.get(normalized) or NodeTypeInfo.unknown(normalized)

    def known_types(self) -> list[str]:
        return sorted(self._infos)

    def __len__(self) -> int:
        return len(self._infos)

    # --- loading -------------------------------------------------------

    def _load(self) -> None:
        if not self._definitions_dir.is_dir():
            raise NodeDefinitionLoadError(self._definitions_dir, "definitions_dir does not exist")

        for yaml_path in sorted(self._definitions_dir.glob("*.yaml")):
            for info in self._load_one(yaml_path):
                if info.node_type in self._infos:
                    raise NodeDefinitionLoadError(yaml_path, f"duplicate node type: {info.node_type}")
                self._infos[info.node_type] = info

    def _load_one(self, yaml_path: Path) -> list[NodeTypeInfo]:
        try:
            raw_text = yaml_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise NodeDefinitionLoadError(yaml_path, f"read failed: {exc}") from exc

        try:
            data = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            line_info = ""
            mark = getattr(exc, "problem_mark", None)
            if mark is not None:
                line_info = f":{mark.line + 1}:{mark.column + 1}"
            raise NodeDefinitionLoadError(yaml_path, f"yaml parse error{line_info}: {exc}") from exc

        if not isinstance(data, dict):
            raise NodeDefinitionLoadError(yaml_path, "top-level YAML must be a mapping")
        package = data.get("package")
        if not isinstance(package, str) or not package:
            raise NodeDefinitionLoadError(yaml_path, "missing required key: package")
        nodes = data.get("nodes") or {}
        if not isinstance(nodes, dict):
            raise NodeDefinitionLoadError(yaml_path, "nodes must be a mapping of name -> definition")

        return [
            self._parse_node(yaml_path, normalize_node_type(f"{package}.{name}"), definition or {})
            for name, definition in nodes.items()
        ]

    def _parse_node(self, yaml_path: Path, node_type: str, definition: Any) -> NodeTypeInfo:
        if not isinstance(definition, dict):
            raise NodeDefinitionLoadError(yaml_path, f"{node_type}: definition must be a mapping")

        try:
            category = NodeCategory(definition.get("category", NodeCategory.OTHER.value))
            capabilities = frozenset(NodeCapability(c) for c in definition.get("capabilities") or [])
        except ValueError as exc:
            raise NodeDefinitionLoadError(yaml_path, f"{node_type}: {exc}") from exc

        credentials = definition.get("required_credentials") or []
        if not isinstance(credentials, list) or not all(isinstance(c, str) for c in credentials):
            raise NodeDefinitionLoadError(yaml_path, f"{node_type}: required_credentials must be a string list")

        return NodeTypeInfo(
            node_type=node_type,
            display_name=str(definition.get("display_name") or node_type),
            required_parameters=tuple(
                self._parse_required(yaml_path, node_type, item)
                for item in definition.get("required_parameters") or []
            ),
            required_credentials=tuple(credentials),
            capabilities=capabilities,
            category=category,
        )

    @staticmethod
    def _parse_required(yaml_path: Path, node_type: str, item: Any) -> RequiredParameter:
        if isinstance(item, str):
            return RequiredParameter(name=item)
        if not isinstance(item, dict) or not isinstance(item.get("name"), str):
            raise NodeDefinitionLoadError(
                yaml_path, f"{node_type}: required_parameters entries must be a name or {{name, when}}"
            )
        when = item.get("when") or {}
        if not isinstance(when, dict):
            raise NodeDefinitionLoadError(yaml_path, f"{node_type}: when must be a mapping")
        return RequiredParameter(
            name=item["name"],
            when={key: tuple(value) if isinstance(value, list) else (value,) for key, value in when.items()},
        )
