"""Tests for feature rendering and finding emission."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from conftest import make_any_object, make_group, make_user
from core.emitter import (
    XSD_DATETIME, XSD_INT, XSD_LONG, XSD_STRING, ReportEmitter, feature_attributes, format_date
)
from core.models import AnyTypeKind, Feature, Misaligned, Missing


def test_dates_use_millisecond_precision_and_offset() -> None:
    """Dates render as yyyy-MM-ddTHH:mm:ss.SSS+hhmm."""

    value = datetime(2024, 3, 5, 14, 7, 9, 123456, tzinfo=timezone(timedelta(hours=2)))

    assert format_date(value) == "2024-03-05T14:07:09.123+0200"
    assert format_date(datetime(2024, 1, 1)) == "2024-01-01T00:00:00.000+0000"
    assert format_date(None) == ""


def test_user_features_with_types() -> None:
    """User features carry their XSD type hint; group-only features are skipped."""

    user = make_user("7", "alice", [])
    user.workflow_id = 42
    user.password_history = ["a", "b"]
    user.failed_logins = 3

    atts = feature_attributes(user, [
        Feature.KEY, Feature.USERNAME, Feature.GROUP_NAME, Feature.WORKFLOW_ID,
        Feature.PASSWORD_HISTORY_SIZE, Feature.FAILED_LOGIN_COUNT, Feature.LAST_LOGIN_DATE,
    ])

    assert atts.getNames() == [
        "key", "username", "workflowId", "passwordHistorySize", "failedLoginCount", "lastLoginDate"
    ]
    assert atts.getValue("passwordHistorySize") == "2"
    assert atts.getValue("lastLoginDate") == ""
    assert atts.getType("key") == XSD_LONG
    assert atts.getType("username") == XSD_STRING
    assert atts.getType("failedLoginCount") == XSD_INT
    assert atts.getType("lastLoginDate") == XSD_DATETIME


def test_group_and_any_object_features() -> None:
    """User-only features never appear on groups or any objects."""

    features = [Feature.KEY, Feature.USERNAME, Feature.GROUP_NAME, Feature.FAILED_LOGIN_COUNT]

    assert feature_attributes(make_group("g1", "staff"), features).getNames() == ["key", "groupName"]
    assert feature_attributes(make_any_object("p1", "printer", "lp0"), features).getNames() == ["key"]


def test_unset_status_is_omitted() -> None:
    group = make_group("g1", "staff")

    assert feature_attributes(group, [Feature.STATUS]).getNames() == []


def test_emit_orders_findings(tree_sink) -> None:
    """Missing findings come first, each group sorted, values sorted."""

    emitter = ReportEmitter(tree_sink, [Feature.KEY])
    emitter.start_kind(AnyTypeKind.ANY_OBJECT, "printer")
    emitter.emit(
        make_any_object("p1", "printer", "lp0"),
        {Missing("R2", "lp0"), Missing("R1", "lp0")},
        {
            Misaligned("R1", "lp0", "location", frozenset({"b", "a"}), frozenset()),
            Misaligned("R1", "lp0", "cn", frozenset({"lp0"}), frozenset({"LP0"})),
        },
    )
    emitter.end_kind(AnyTypeKind.ANY_OBJECT)

    section = tree_sink.etree.getroot()
    assert section.tag == "anyObjects"
    assert section.get("type") == "printer"
    element = section[0]
    assert element.tag == "anyObject"
    assert [(child.tag, child.get("resource"), child.get("name")) for child in element] == [
        ("missing", "R1", None),
        ("missing", "R2", None),
        ("misaligned", "R1", "cn"),
        ("misaligned", "R1", "location"),
    ]
    location = element[3]
    assert [value.text for value in location.find("onSyncope")] == ["a", "b"]
    assert len(location.find("onResource")) == 0
