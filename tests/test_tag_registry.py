from __future__ import annotations

import pytest

from flukedaq.config import TagConfig
from flukedaq.errors import ConfigurationError
from flukedaq.hardware import TagRegistry, build_tag_map

TAGS = ['Scan', 'Ch1', 'Ch2', 'Ch3', 'Ch4', 'Ch5']


def test_build_tag_map_only_contains_configured_indices() -> None:
    configured = {
        0: TagConfig(tag='Scan'),
        4: TagConfig(tag='Outlet', type='temperature'),
        2: TagConfig(tag='Inlet', type='temperature'),
    }
    tag_map = build_tag_map(TAGS, configured)

    assert sorted(tag_map) == [0, 2, 4]
    assert tag_map[2].tag == 'Ch2'
    assert tag_map[4].name == 'Outlet'
    assert tag_map[4].type == 'temperature'


@pytest.mark.parametrize('index', [6, 42, -1])
def test_build_tag_map_rejects_out_of_range_index(index: int) -> None:
    with pytest.raises(ConfigurationError):
        build_tag_map(TAGS, {0: TagConfig(tag='Scan'), index: TagConfig(tag='Bad')})


def test_names_exclude_control_channel_and_follow_index_order() -> None:
    registry = TagRegistry.from_config(
        TAGS,
        {
            5: TagConfig(tag='Five'),
            0: TagConfig(tag='Scan'),
            1: TagConfig(tag='One'),
            3: TagConfig(tag='Three'),
        },
    )
    assert len(registry) == 4
    assert registry.names() == ['One', 'Three', 'Five']
    assert [descriptor.index for descriptor in registry.channels()] == [1, 3, 5]
    assert registry.control.tag == 'Scan'


def test_missing_control_channel_is_a_configuration_error() -> None:
    registry = TagRegistry.from_config(TAGS, {1: TagConfig(tag='One')})
    with pytest.raises(ConfigurationError):
        _ = registry.control


def test_untyped_tags_default_to_ignore() -> None:
    registry = TagRegistry.from_config(TAGS, {1: TagConfig(tag='One'), 2: TagConfig(tag='Two', type='flow')})
    assert registry[1].type == 'ignore'
    assert registry[2].type == 'flow'
    assert registry.names() == ['One', 'Two']
