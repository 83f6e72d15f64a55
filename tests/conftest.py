"""Shared fixtures for the reconciliation report tests."""

from __future__ import annotations

from typing import Dict, List, Optional

import pandas as pd
import pytest
from lxml.sax import ElementTreeContentHandler

from core.connector import Connector, ConnectorFactory
from core.exceptions import ConnectorError
from core.models import (
    AnyObject, AnyType, AnyTypeKind, ConnectorObject, ExternalResource, Group, MappingItem,
    OperationOptions, Provision, ReconciliationReportletConf, User
)
from core.report import ReportRunner
from core.reportlet import ReconciliationReportlet
from core.store import InMemoryIdentityStore


def tree_content_sink() -> ElementTreeContentHandler:
    """Content handler building an in-memory lxml tree, read back via ``.etree``."""

    return ElementTreeContentHandler()


# resource key -> uid -> remote attributes
RemoteData = Dict[str, Dict[str, Dict[str, List[str]]]]


class FakeConnector(Connector):
    """Connector answering from a dictionary and recording every read."""

    def __init__(self, resource: ExternalResource, objects: Dict[str, Dict[str, List[str]]]):
        super().__init__(resource)
        self.objects = objects
        self.reads: List[tuple] = []

    def get_object(self, object_class: str, uid: str,
                   options: OperationOptions) -> Optional[ConnectorObject]:
        self.reads.append((object_class, uid, options))
        attrs = self.objects.get(uid)
        if attrs is None:
            return None
        return ConnectorObject(uid=uid, object_class=object_class, attributes=dict(attrs))


class FailingConnector(Connector):
    """Connector whose every read fails."""

    def get_object(self, object_class, uid, options):
        raise ConnectorError(f"{self.resource.key} unreachable")


def make_factory(remote: RemoteData) -> ConnectorFactory:
    return ConnectorFactory(registry={
        "fake": lambda resource: FakeConnector(resource, remote.get(resource.key, {})),
        "failing": FailingConnector,
    })


def user_provision(resource_key: str, extra_items: Optional[List[MappingItem]] = None,
                   object_class: str = "__ACCOUNT__") -> Provision:
    items = [MappingItem("username", "uid", conn_object_key=True)]
    items.extend(extra_items or [MappingItem("mail", "mail")])
    return Provision(f"{resource_key}:USER", AnyType.user(), object_class, items)


def make_resource(key: str, *provisions: Provision, connector_type: str = "fake") -> ExternalResource:
    return ExternalResource(key=key, connector_type=connector_type, provisions=list(provisions))


def make_user(key: str, username: str, resources: List[str], **attrs: List[str]) -> User:
    return User(
        key=key,
        type=AnyType.user(),
        username=username,
        status="active",
        resources=resources,
        plain_attrs=dict(attrs),
    )


def make_group(key: str, name: str, resources: Optional[List[str]] = None) -> Group:
    return Group(key=key, type=AnyType.group(), name=name, resources=resources or [])


def make_any_object(key: str, any_type: str, name: str, resources: Optional[List[str]] = None) -> AnyObject:
    return AnyObject(
        key=key,
        type=AnyType(any_type, AnyTypeKind.ANY_OBJECT),
        name=name,
        resources=resources or [],
    )


def run_report(store: InMemoryIdentityStore, remote: RemoteData,
               conf: Optional[ReconciliationReportletConf] = None, **kwargs):
    """Run one reportlet into an lxml tree and return the reportlet element."""

    conf = conf or ReconciliationReportletConf(name="test")
    sink = tree_content_sink()
    reportlet = ReconciliationReportlet(store, make_factory(remote), **kwargs)
    ReportRunner("report", [(reportlet, conf)]).run(sink)
    return sink.etree.getroot().find("reportlet")


def workbook_frames(export_path: str) -> Dict[str, pd.DataFrame]:
    """Store workbook sheets with one CSV-backed resource."""

    return {
        'users': pd.DataFrame([
            {'key': '1', 'username': 'alice', 'status': 'active', 'resources': 'HR', 'attr.mail': 'a@x'},
            {'key': '2', 'username': 'bob', 'status': 'active', 'resources': 'HR', 'attr.mail': 'b@x'},
            {'key': '3', 'username': 'carol', 'status': 'active', 'resources': 'HR', 'attr.mail': 'c@x'},
        ]),
        'groups': pd.DataFrame([{'key': 'g1', 'name': 'staff'}]),
        'resources': pd.DataFrame([
            {'key': 'HR', 'connector_type': 'csv', 'conf.path': str(export_path)},
        ]),
        'mapping': pd.DataFrame([
            {'resource': 'HR', 'any_type': 'USER', 'object_class': '__ACCOUNT__',
             'int_attr': 'username', 'ext_attr': 'uid', 'conn_object_key': 'true'},
            {'resource': 'HR', 'any_type': 'USER', 'object_class': '__ACCOUNT__',
             'int_attr': 'mail', 'ext_attr': 'mail', 'conn_object_key': ''},
        ]),
    }


def write_workbook(path, frames: Dict[str, pd.DataFrame]) -> None:
    with pd.ExcelWriter(path, engine='openpyxl') as writer:
        for sheet, frame in frames.items():
            frame.to_excel(writer, sheet_name=sheet, index=False)


@pytest.fixture
def tree_sink():
    return tree_content_sink()


@pytest.fixture
def hr_export(tmp_path):
    """CSV export where alice matches, bob is absent and carol differs."""

    path = tmp_path / "hr.csv"
    path.write_text("uid,mail\nalice,a@x\ncarol,c@y\n", encoding="utf-8")
    return path


@pytest.fixture
def store_workbook(tmp_path, hr_export):
    path = tmp_path / "store.xlsx"
    write_workbook(path, workbook_frames(hr_export))
    return path
