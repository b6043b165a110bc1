"""Map raw device channel identifiers to named, typed tags."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Sequence

from ..config import TagConfig
from ..constants import CONTROL_INDEX
from ..errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class ChannelDescriptor:
    """One configured channel: where it lives on the device and what it means."""

    index: int
    name: str
    tag: str
    type: str


def build_tag_map(tags: Sequence[str], configured: Mapping[int, TagConfig]) -> Dict[int, ChannelDescriptor]:
    """Resolve each configured index against the browsed *tags* list.

    Indices missing from *configured* are left out entirely, so the result has
    exactly one entry per configured tag.
    """

    tag_map: Dict[int, ChannelDescriptor] = {}
    for index, entry in configured.items():
        if index < 0 or index >= len(tags):
            raise ConfigurationError(
                f"Tag index {index} ('{entry.tag}') out of range (device exposes {len(tags)} tags)"
            )
        tag_map[index] = ChannelDescriptor(index=index, name=entry.tag, tag=tags[index], type=entry.type)
    return tag_map


class TagRegistry:
    """Index-keyed collection of :class:`ChannelDescriptor` entries."""

    def __init__(self, descriptors: Mapping[int, ChannelDescriptor]) -> None:
        self._descriptors: Dict[int, ChannelDescriptor] = dict(descriptors)

    @classmethod
    def from_config(cls, tags: Sequence[str], configured: Mapping[int, TagConfig]) -> "TagRegistry":
        return cls(build_tag_map(tags, configured))

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, index: object) -> bool:
        return index in self._descriptors

    def __getitem__(self, index: int) -> ChannelDescriptor:
        return self._descriptors[index]

    def __iter__(self) -> Iterator[ChannelDescriptor]:
        return iter(self._descriptors[index] for index in sorted(self._descriptors))

    @property
    def control(self) -> ChannelDescriptor:
        try:
            return self._descriptors[CONTROL_INDEX]
        except KeyError as exc:
            raise ConfigurationError(f"Scan control tag (index {CONTROL_INDEX}) is not configured") from exc

    def channels(self) -> List[ChannelDescriptor]:
        """Measurement channels in ascending index order, control channel excluded."""

        return [descriptor for descriptor in self if descriptor.index != CONTROL_INDEX]

    def names(self) -> List[str]:
        return [descriptor.name for descriptor in self.channels()]
