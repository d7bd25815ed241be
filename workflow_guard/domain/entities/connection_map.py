"""ConnectionMap - 工作流的连接表

结构：source 节点名 -> 通道名 -> 输出槽位列表 -> 每个槽位若干 ConnectionTarget

核心不变式（槽位保序）：
- 槽位下标有业务含义：IF 节点 slot 0 = true、slot 1 = false；Switch 节点 slot N = case N
- 删除或改接连接时绝不重新编号；中间的空槽位作为"洞"保留
- 唯一允许的压缩是裁掉列表末尾的空槽位
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from workflow_guard.domain.exceptions import DomainError
from workflow_guard.domain.value_objects.connection import ConnectionTarget

Slots = list[list[ConnectionTarget]]


def trim_trailing_empty_slots(slots: Slots) -> None:
    """只裁掉末尾的空槽位，中间的空槽位保持原位"""
    while slots and not slots[-1]:
        slots.pop()


@dataclass
class ConnectionMap:
    """连接表

    _data 的三级结构与工作流文档中的 connections 完全对应，
    通道名保留原始字符串（未知通道交给校验器报告）。
    文档里的 null 槽位解析为空槽位，to_dict 统一写回 []，后续槽位下标不变。
    """

    _data: dict[str, dict[str, Slots]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> ConnectionMap:
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise DomainError("connections 必须是对象")

        parsed: dict[str, dict[str, Slots]] = {}
        for source, channels in data.items():
            if not isinstance(channels, dict):
                raise DomainError(f"节点 {source} 的 connections 必须是对象")
            parsed[source] = {}
            for channel, slots in channels.items():
                if not isinstance(slots, list):
                    raise DomainError(f"{source}.{channel} 必须是槽位数组")
                parsed_slots: Slots = []
                for slot in slots:
                    # null 槽位等价于空槽位（洞）
                    if slot is None:
                        parsed_slots.append([])
                        continue
                    if not isinstance(slot, list):
                        raise DomainError(f"{source}.{channel} 的槽位必须是数组")
                    try:
                        parsed_slots.append([ConnectionTarget.from_dict(t) for t in slot])
                    except (TypeError, ValueError) as exc:
                        raise DomainError(f"{source}.{channel} 连接目标不合法: {exc}") from exc
                parsed[source][channel] = parsed_slots
        return cls(parsed)

    def to_dict(self) -> dict[str, Any]:
        return {
            source: {
                channel: [[target.to_dict() for target in slot] for slot in slots]
                for channel, slots in channels.items()
            }
            for source, channels in self._data.items()
        }

    def copy(self) -> ConnectionMap:
        # ConnectionTarget 不可变，复制列表结构即可
        return ConnectionMap(
            {
                source: {channel: [list(slot) for slot in slots] for channel, slots in channels.items()}
                for source, channels in self._data.items()
            }
        )

    # --- 查询 ----------------------------------------------------------

    def sources(self) -> list[str]:
        return list(self._data)

    def channels(self, source: str) -> dict[str, Slots]:
        return self._data.get(source, {})

    def slots(self, source: str, channel: str) -> Slots:
        return self._data.get(source, {}).get(channel, [])

    def iter_connections(self) -> Iterator[tuple[str, str, int, ConnectionTarget]]:
        """遍历所有连接：(source, channel, slot_index, target)"""
        for source, channels in self._data.items():
            for channel, slots in channels.items():
                for slot_index, slot in enumerate(slots):
                    for target in slot:
                        yield source, channel, slot_index, target

    def outgoing_count(self, source: str, channel: str | None = None) -> int:
        channels = self.channels(source)
        selected = [channels.get(channel, [])] if channel else list(channels.values())
        return sum(len(slot) for slots in selected for slot in slots)

    def has_connection(
        self,
        source: str,
        target: str,
        *,
        channel: str | None = None,
        slot_index: int | None = None,
        target_type: str | None = None,
        target_index: int | None = None,
    ) -> bool:
        matches = self._matches(source, target, channel, slot_index, target_type, target_index)
        return next(matches, None) is not None

    def references(self, name: str) -> bool:
        """name 是否作为 source 或 target 出现在连接表中"""
        if name in self._data:
            return True
        return any(target.node == name for _, _, _, target in self.iter_connections())

    def __len__(self) -> int:
        return sum(1 for _ in self.iter_connections())

    def is_empty(self) -> bool:
        return len(self) == 0

    # --- 修改 ----------------------------------------------------------

    def add(self, source: str, channel: str, slot_index: int, target: ConnectionTarget) -> None:
        """在指定槽位追加目标，必要时用空槽位补齐到 slot_index"""
        if slot_index < 0:
            raise DomainError(f"槽位下标不能为负数: {slot_index}")
        slots = self._data.setdefault(source, {}).setdefault(channel, [])
        while len(slots) <= slot_index:
            slots.append([])
        slots[slot_index].append(target)

    def remove(
        self,
        source: str,
        target: str,
        *,
        channel: str | None = None,
        slot_index: int | None = None,
        target_type: str | None = None,
        target_index: int | None = None,
    ) -> int:
        """删除匹配的连接，返回删除数量（只裁剪末尾空槽位）"""
        removed = 0
        for channel_name, slots in list(self.channels(source).items()):
            if channel is not None and channel_name != channel:
                continue
            channel_removed = 0
            for index, slot in enumerate(slots):
                if slot_index is not None and index != slot_index:
                    continue
                kept = [
                    t
                    for t in slot
                    if not _target_matches(t, target, target_type, target_index)
                ]
                channel_removed += len(slot) - len(kept)
                slots[index] = kept
            if channel_removed:
                removed += channel_removed
                self._cleanup(source, channel_name)
        return removed

    def replace_target(
        self,
        source: str,
        channel: str,
        slot_index: int,
        old_target: str,
        new_target: ConnectionTarget,
    ) -> bool:
        """原位替换某个槽位里的目标（改接），槽位下标不变"""
        slots = self.slots(source, channel)
        if slot_index >= len(slots):
            return False
        slot = slots[slot_index]
        for position, existing in enumerate(slot):
            if existing.node == old_target:
                slot[position] = new_target
                return True
        return False

    def filter_targets(self, keep: Callable[[str, str, ConnectionTarget], bool]) -> int:
        """按条件过滤目标，返回删除数量

        keep(source, channel, target) 返回 False 的目标被删除；槽位下标保持不变。
        """
        removed = 0
        for source in list(self._data):
            for channel_name, slots in list(self._data[source].items()):
                channel_removed = 0
                for index, slot in enumerate(slots):
                    kept = [t for t in slot if keep(source, channel_name, t)]
                    channel_removed += len(slot) - len(kept)
                    slots[index] = kept
                if channel_removed:
                    removed += channel_removed
                    self._cleanup(source, channel_name)
        return removed

    def drop_source(self, source: str) -> int:
        count = self.outgoing_count(source)
        self._data.pop(source, None)
        return count

    def remove_node_references(self, name: str) -> int:
        """删除节点时调用：删掉它的输出以及所有指向它的连接"""
        removed = self.drop_source(name)
        removed += self.filter_targets(lambda _s, _c, target: target.node != name)
        return removed

    def rename_node(self, old: str, new: str) -> None:
        if old in self._data:
            # 保持 source 键的顺序
            self._data = {(new if key == old else key): value for key, value in self._data.items()}
        for channels in self._data.values():
            for slots in channels.values():
                for slot in slots:
                    for position, target in enumerate(slot):
                        if target.node == old:
                            slot[position] = ConnectionTarget(node=new, type=target.type, index=target.index)

    def _matches(
        self,
        source: str,
        target: str,
        channel: str | None,
        slot_index: int | None,
        target_type: str | None,
        target_index: int | None,
    ) -> Iterator[tuple[str, int, ConnectionTarget]]:
        for channel_name, slots in self.channels(source).items():
            if channel is not None and channel_name != channel:
                continue
            for index, slot in enumerate(slots):
                if slot_index is not None and index != slot_index:
                    continue
                for existing in slot:
                    if _target_matches(existing, target, target_type, target_index):
                        yield channel_name, index, existing

    def _cleanup(self, source: str, channel: str) -> None:
        channels = self._data.get(source)
        if channels is None or channel not in channels:
            return
        trim_trailing_empty_slots(channels[channel])
        if not channels[channel]:
            del channels[channel]
        if not channels:
            del self._data[source]


def _target_matches(
    existing: ConnectionTarget,
    target: str,
    target_type: str | None,
    target_index: int | None,
) -> bool:
    if existing.node != target:
        return False
    if target_type is not None and existing.type != target_type:
        return False
    if target_index is not None and existing.index != target_index:
        return False
    return True
