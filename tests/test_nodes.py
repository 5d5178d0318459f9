from datetime import datetime, timedelta, timezone

import pytest

from hsctl.cli.nodes import NodeRecord, node_key_short_string, nodes_to_table
from hsctl.cli.output import light_green, light_magenta, light_red, light_yellow

KEY = "686824e749f3b7f2a5927ee6c1e422aee5292592d9179a271ed7b3e659b44a66"
OTHER_KEY = "dec46ef9dc45c7d2f03bfcd5a640d9e24e3cc68ce3d9da223867c9bc6d5e9863"
NOW = datetime(2022, 9, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_node(**overrides):
    values = dict(
        id=1,
        name="test_get_shared_nodes_1",
        given_name="given",
        node_key=KEY,
        namespace="shared1",
        ip_addresses=["100.64.0.1", "fd7a:115c:a1e0::1"],
    )
    values.update(overrides)
    return NodeRecord(**values)


def test_short_string_pinned_value():
    assert node_key_short_string(KEY) == "[aGgk5]"


def test_short_string_prefix_is_optional():
    assert node_key_short_string("nodekey:" + OTHER_KEY) == node_key_short_string(
        OTHER_KEY
    )


def test_short_string_zero_key_is_empty():
    assert node_key_short_string("0" * 64) == ""


@pytest.mark.parametrize("bad", ["zz" * 32, "abcd", KEY + "00"])
def test_short_string_rejects_malformed_keys(bad):
    with pytest.raises(ValueError):
        node_key_short_string(bad)


def test_header_without_and_with_tags():
    plain = nodes_to_table("", False, [], NOW)
    tagged = nodes_to_table("", True, [], NOW)
    assert len(plain) == 1 and len(plain[0]) == 10
    assert tagged[0][:10] == plain[0]
    assert tagged[0][10:] == ["ForcedTags", "InvalidTags", "ValidTags"]


def test_row_contents():
    node = make_node(ephemeral=True, last_seen=NOW - timedelta(minutes=1))
    row = nodes_to_table("", False, [node], NOW)[1]
    assert row[0] == "1"
    assert row[1] == "test_get_shared_nodes_1"
    assert row[2] == "given"
    assert row[3] == node_key_short_string(KEY)
    assert row[4] == light_magenta("shared1")
    assert row[5] == "100.64.0.1, fd7a:115c:a1e0::1"
    assert row[6] == "true"
    assert row[7] == (NOW - timedelta(minutes=1)).strftime("%Y-%m-%d %H:%M:%S")
    assert row[8] == light_green("online")
    assert row[9] == light_green("no")


def test_offline_when_never_seen_or_stale():
    rows = nodes_to_table(
        "",
        False,
        [make_node(), make_node(last_seen=NOW - timedelta(minutes=10))],
        NOW,
    )
    assert rows[1][7] == ""
    assert rows[1][8] == light_red("offline")
    assert rows[2][8] == light_red("offline")


def test_expiry_states():
    rows = nodes_to_table(
        "",
        False,
        [
            make_node(expiry=NOW - timedelta(hours=1)),
            make_node(expiry=NOW + timedelta(hours=1)),
        ],
        NOW,
    )
    assert rows[1][9] == light_red("yes")
    assert rows[2][9] == light_green("no")


def test_shared_namespace_is_highlighted_differently():
    rows = nodes_to_table(
        "shared1",
        False,
        [make_node(), make_node(namespace="shared2")],
        NOW,
    )
    assert rows[1][4] == light_magenta("shared1")
    assert rows[2][4] == light_yellow("shared2")


def test_ip_address_order_is_v4_then_v6():
    node = make_node(ip_addresses=["fd7a:115c:a1e0::2", "100.64.0.2"])
    row = nodes_to_table("", False, [node], NOW)[1]
    assert row[5] == "100.64.0.2, fd7a:115c:a1e0::2"


def test_tag_columns_skip_forced_tags():
    node = make_node(
        forced_tags=["tag:a", "tag:b"],
        invalid_tags=["tag:a", "tag:x"],
        valid_tags=["tag:b", "tag:y", "tag:z"],
    )
    row = nodes_to_table("", True, [node], NOW)[1]
    assert row[10] == "tag:a,tag:b"
    assert row[11] == light_red("tag:x")
    assert row[12] == light_green("tag:y") + "," + light_green("tag:z")


def test_every_row_matches_header_length():
    nodes = [make_node(id=i, node_key=OTHER_KEY) for i in range(3)]
    rows = nodes_to_table("", True, nodes, NOW)
    assert [row[0] for row in rows[1:]] == ["0", "1", "2"]
    assert all(len(row) == len(rows[0]) for row in rows)


def test_malformed_key_raises():
    with pytest.raises(ValueError):
        nodes_to_table("", False, [make_node(node_key="nothex")], NOW)