"""Tests for the attribute diff engine."""

from __future__ import annotations

from core.diff import DiffEngine
from core.models import Misaligned


def _names(misaligned):
    return {item.name for item in misaligned}


def test_identical_projections_produce_no_findings() -> None:
    """Equal value sets on both sides are aligned, whatever the value order."""

    source = DiffEngine.to_value_sets({"mail": ["a@x"], "groups": ["b", "a", "a"]})
    remote = DiffEngine.to_value_sets({"mail": ["a@x"], "groups": ["a", "b"]})

    assert DiffEngine.compare("R1", "alice", source, remote) == set()


def test_attribute_only_on_source_has_empty_resource_side() -> None:
    """A source attribute missing remotely is misaligned against an empty set."""

    misaligned = DiffEngine.compare(
        "R1", "alice", {"mail": frozenset({"a@x"}), "dept": frozenset({"it"})}, {"mail": frozenset({"a@x"})}
    )

    assert misaligned == {Misaligned("R1", "alice", "dept", frozenset({"it"}), frozenset())}


def test_attribute_only_on_resource_has_empty_source_side() -> None:
    """A remote-only attribute is misaligned against an empty source set."""

    source = DiffEngine.to_value_sets({"mail": ["d@x"]})
    remote = DiffEngine.filter_remote({"mail": ["d@x"], "phone": ["555"]})

    misaligned = DiffEngine.compare("R1", "dave", source, remote)

    assert misaligned == {Misaligned("R1", "dave", "phone", frozenset(), frozenset({"555"}))}


def test_differing_values_are_reported_with_both_sides() -> None:
    """Different value sets produce one finding carrying both sets."""

    source = DiffEngine.to_value_sets({"mail": ["c@x"], "dept": ["sales"]})
    remote = DiffEngine.filter_remote({"mail": ["c@y"], "dept": ["sales"], "__PASSWORD__": ["hash"]})

    misaligned = DiffEngine.compare("R1", "carol", source, remote)

    assert misaligned == {Misaligned("R1", "carol", "mail", frozenset({"c@x"}), frozenset({"c@y"}))}


def test_password_and_enable_attributes_are_never_compared() -> None:
    """The reserved operational attributes are dropped from the remote snapshot."""

    remote = DiffEngine.filter_remote({"__PASSWORD__": ["secret"], "__ENABLE__": [True], "cn": ["Carol"]})

    assert set(remote) == {"cn"}


def test_excluded_remote_attributes_are_dropped() -> None:
    remote = DiffEngine.filter_remote({"uid": ["carol"], "mail": ["c@x"]}, exclude=("uid",))

    assert remote == {"mail": frozenset({"c@x"})}


def test_values_are_compared_as_strings() -> None:
    """Numbers and their string form compare equal."""

    source = DiffEngine.to_value_sets({"uidNumber": [1001]})
    remote = DiffEngine.to_value_sets({"uidNumber": ["1001"]})

    assert DiffEngine.compare("R1", "x", source, remote) == set()


def test_swapping_sides_swaps_values() -> None:
    """Swapping source and remote swaps the two sides of every finding."""

    source = DiffEngine.to_value_sets({"a": ["1"], "b": ["2"], "c": ["3"]})
    remote = DiffEngine.to_value_sets({"a": ["1"], "b": ["20"], "d": ["4"]})

    forward = DiffEngine.compare("R1", "k", source, remote)
    backward = DiffEngine.compare("R1", "k", remote, source)

    assert _names(forward) == _names(backward) == {"b", "c", "d"}
    assert {(m.name, m.on_resource, m.on_syncope) for m in forward} == {
        (m.name, m.on_syncope, m.on_resource) for m in backward
    }
