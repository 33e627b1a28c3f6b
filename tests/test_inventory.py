"""Tests for the port inventory builder."""

from port_manager.core.inventory import (
    BoundTo,
    NoHostBinding,
    build_inventory,
    classify_port_entry,
    container_bindings,
    find_port_conflicts,
    normalize_name,
)

from .conftest import make_container


class TestClassifyPortEntry:
    """Binding-table entries are either unbound or bound."""

    def test_none_is_unbound(self):
        assert classify_port_entry("80/tcp", None) == NoHostBinding("80/tcp")

    def test_empty_list_is_unbound(self):
        assert classify_port_entry("80/tcp", []) == NoHostBinding("80/tcp")

    def test_non_list_is_unbound(self):
        assert isinstance(classify_port_entry("80/tcp", "8080"), NoHostBinding)

    def test_list_is_bound(self):
        entry = classify_port_entry("80/tcp", [{"HostIp": "", "HostPort": "8080"}])
        assert isinstance(entry, BoundTo)
        assert entry.container_port == "80/tcp"
        assert len(entry.bindings) == 1


class TestNormalizeName:
    def test_strips_leading_separator(self):
        assert normalize_name(["/web"], "a1b2c3d4e5f6a7b8") == "web"

    def test_keeps_inner_separator(self):
        assert normalize_name(["/proj/web"], "a1b2c3d4e5f6a7b8") == "proj/web"

    def test_falls_back_to_short_id(self):
        assert normalize_name([], "a1b2c3d4e5f6a7b8c9d0") == "a1b2c3d4e5f6"
        assert normalize_name(["/"], "a1b2c3d4e5f6a7b8c9d0") == "a1b2c3d4e5f6"


class TestBuildInventory:
    """Inventory aggregation over a snapshot."""

    def test_web_and_db_used_ports(self, inventory):
        assert inventory.used_ports == [5432, 5433, 8080]

    def test_container_order_and_names(self, inventory):
        assert [record.name for record in inventory.containers] == ["web", "db"]
        assert inventory.containers[0].id == "a1b2c3d4e5f6"

    def test_unpublished_port_contributes_nothing(self, inventory):
        db = inventory.containers[1]
        assert [binding.container_port for binding in db.bindings] == ["5432/tcp", "5433/tcp"]

    def test_container_without_host_ports_is_omitted(self, web_container):
        exposed_only = make_container("ffffffffffff0000", "cache", {"6379/tcp": None})
        no_table = make_container("eeeeeeeeeeee0000", "worker", None)

        inventory = build_inventory([exposed_only, web_container, no_table])

        assert [record.name for record in inventory.containers] == ["web"]
        assert inventory.used_ports == [8080]

    def test_empty_snapshot(self):
        inventory = build_inventory([])
        assert inventory.used_ports == []
        assert inventory.containers == []

    def test_used_ports_are_deduplicated(self):
        dual_stack = make_container(
            "abcdefabcdef0000",
            "proxy",
            {
                "80/tcp": [
                    {"HostIp": "0.0.0.0", "HostPort": "80"},
                    {"HostIp": "::", "HostPort": "80"},
                ]
            },
        )
        inventory = build_inventory([dual_stack])

        assert inventory.used_ports == [80]
        assert len(inventory.containers[0].bindings) == 2

    def test_blank_host_ip_defaults_to_all_interfaces(self):
        container = make_container("abcdefabcdef0000", "app", {"3000/tcp": [{"HostIp": "", "HostPort": "3000"}]})
        (binding,) = container_bindings(container)
        assert binding.host_ip == "0.0.0.0"

    def test_malformed_bindings_are_skipped(self):
        container = make_container(
            "abcdefabcdef0000",
            "odd",
            {
                "80/tcp": [
                    {"HostIp": "0.0.0.0", "HostPort": "not-a-port"},
                    "garbage",
                    {"HostIp": "0.0.0.0", "HostPort": "70000"},
                    {"HostIp": "0.0.0.0"},
                    {"HostIp": "0.0.0.0", "HostPort": "²"},
                    {"HostIp": "0.0.0.0", "HostPort": "٨٠"},
                    {"HostIp": "0.0.0.0", "HostPort": "8_0"},
                    {"HostIp": "0.0.0.0", "HostPort": "8081"},
                ]
            },
        )
        inventory = build_inventory([container])

        assert inventory.used_ports == [8081]

    def test_unicode_digit_host_port_does_not_block_inventory(self, web_container):
        odd = make_container("abcdefabcdef0000", "odd", {"80/tcp": [{"HostIp": "", "HostPort": "²"}]})

        inventory = build_inventory([odd, web_container])

        assert inventory.used_ports == [8080]
        assert [record.name for record in inventory.containers] == ["web"]

    def test_used_ports_match_container_bindings(self, inventory):
        bound = {binding.host_port for record in inventory.containers for binding in record.bindings}
        assert inventory.used_ports == sorted(bound)
        assert all(record.bindings for record in inventory.containers)

    def test_wire_format_uses_camel_case(self, inventory):
        data = inventory.model_dump()

        assert data["usedPorts"] == [5432, 5433, 8080]
        web = data["containers"][0]
        assert web["status"] == "Up 5 minutes"
        assert web["ports"] == [{"containerPort": "80/tcp", "hostPort": 8080, "hostIp": "0.0.0.0"}]


class TestFindPortConflicts:
    def test_no_conflicts(self, inventory):
        assert find_port_conflicts(inventory) == {}

    def test_same_container_dual_stack_is_not_a_conflict(self):
        container = make_container(
            "abcdefabcdef0000",
            "proxy",
            {"80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "80"}, {"HostIp": "::", "HostPort": "80"}]},
        )
        assert find_port_conflicts(build_inventory([container])) == {}

    def test_two_containers_on_one_port(self):
        first = make_container("111111111111aaaa", "blue", {"80/tcp": [{"HostIp": "127.0.0.1", "HostPort": "8000"}]})
        second = make_container("222222222222bbbb", "green", {"8080/tcp": [{"HostIp": "10.0.0.5", "HostPort": "8000"}]})

        conflicts = find_port_conflicts(build_inventory([first, second]))

        assert list(conflicts) == [8000]
        assert [owner.container for owner in conflicts[8000]] == ["blue", "green"]
