"""Property-based tests for parsing and ordering helpers."""

import pytest
from hypothesis import given, strategies as st

from simple_docker_manager.access_gate import extract_cookie
from simple_docker_manager.managers.container_manager import (
    generate_container_name,
    sort_ports,
)
from simple_docker_manager.models.containers import EnvironmentVariable, PortMapping
from simple_docker_manager.utils.metrics_calculator import calculate_cpu_percent

ports = st.builds(
    PortMapping,
    container_port=st.integers(min_value=0, max_value=65535),
    host_port=st.one_of(st.none(), st.integers(min_value=0, max_value=65535)),
    protocol=st.sampled_from(["tcp", "udp", "sctp"]),
)

cookie_names = st.text(
    alphabet=st.characters(min_codepoint=33, max_codepoint=126, exclude_characters=";="),
    min_size=1,
    max_size=12,
)
cookie_values = st.text(
    alphabet=st.characters(min_codepoint=33, max_codepoint=126, exclude_characters=";"),
    min_size=1,
    max_size=24,
)


@pytest.mark.property
def test_port_sort_example():
    """Property: ports order by container port, then protocol."""
    unsorted = [
        PortMapping(container_port=80, protocol="tcp"),
        PortMapping(container_port=22, protocol="tcp"),
        PortMapping(container_port=80, protocol="udp"),
    ]

    assert [(p.container_port, p.protocol) for p in sort_ports(unsorted)] == [
        (22, "tcp"),
        (80, "tcp"),
        (80, "udp"),
    ]


@pytest.mark.property
@given(st.lists(ports, max_size=30))
def test_port_sort_is_ordered_and_stable(port_list):
    """Property: sorting is total, keeps every entry, and is idempotent."""
    result = sort_ports(port_list)

    keys = [p.sort_key() for p in result]
    assert keys == sorted(keys)
    assert sorted(map(repr, result)) == sorted(map(repr, port_list))
    assert sort_ports(result) == result


@pytest.mark.property
@given(
    st.lists(st.tuples(cookie_names, cookie_values), max_size=5),
    cookie_values,
    st.lists(st.tuples(cookie_names, cookie_values), max_size=5),
)
def test_extract_cookie_finds_session(before, session_id, after):
    """Property: the first exactly-named cookie wins regardless of neighbours."""
    pairs = before + [("session_id", session_id)] + after
    header = "; ".join(f"{name}={value}" for name, value in pairs)

    expected = next(value for name, value in pairs if name == "session_id")
    assert extract_cookie(header) == expected


@pytest.mark.property
@given(st.lists(st.tuples(cookie_names, cookie_values), max_size=6))
def test_extract_cookie_ignores_other_names(pairs):
    """Property: without a session_id cookie nothing is extracted."""
    pairs = [(name, value) for name, value in pairs if name != "session_id"]
    header = "; ".join(f"{name}={value}" for name, value in pairs)

    assert extract_cookie(header) is None


@pytest.mark.property
@given(
    st.integers(min_value=0, max_value=10**15),
    st.integers(min_value=-(10**15), max_value=10**15),
    st.integers(min_value=1, max_value=256),
)
def test_cpu_percent_never_negative(cpu_delta, system_delta, online_cpus):
    """Property: CPU usage is non-negative and zero without system progress."""
    percent = calculate_cpu_percent(cpu_delta, system_delta, online_cpus)

    assert percent >= 0.0
    if system_delta <= 0:
        assert percent == 0.0


@pytest.mark.property
@given(
    st.text(
        alphabet=st.characters(exclude_categories=("Cs",), exclude_characters="="),
        min_size=1,
    ),
    st.text(alphabet=st.characters(exclude_categories=("Cs",))),
)
def test_environment_entry_splits_on_first_equals(key, value):
    """Property: values may contain '=', keys never do."""
    entry = EnvironmentVariable(key=key, value=value).to_entry()

    assert EnvironmentVariable.from_entry(entry) == EnvironmentVariable(key=key, value=value)


@pytest.mark.property
@given(st.from_regex(r"[a-z0-9]+(/[a-z0-9-]+){0,2}(:[a-z0-9.]+)?", fullmatch=True))
def test_generated_names_are_docker_safe(image):
    """Property: generated names only use characters Docker accepts."""
    name = generate_container_name(image, now_ms=42)

    assert name.endswith("-42")
    assert all(ch.isalnum() or ch in "_.-" for ch in name)
