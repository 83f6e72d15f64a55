# =============================================================================
# utils/store_loader.py - Identity store workbook loader
# =============================================================================

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from core.exceptions import StoreError
from core.models import (
    AnyObject, AnyType, AnyTypeKind, ExternalResource, Group, MappingItem, MappingPurpose,
    Provision, User, VirSchema
)
from core.store import InMemoryIdentityStore
from utils.csv_utils import CSVHandler

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {
    'any_types': ['key'],
    'users': ['key', 'username'],
    'groups': ['key', 'name'],
    'any_objects': ['key', 'type'],
    'resources': ['key', 'connector_type'],
    'mapping': ['resource', 'any_type', 'object_class', 'int_attr', 'ext_attr'],
    'virtual_schemas': ['key', 'resource', 'any_type', 'ext_attr'],
}

PLAIN_ATTR_PREFIX = 'attr.'
VIRTUAL_ATTR_PREFIX = 'vattr.'
CONF_PREFIX = 'conf.'

TRUE_VALUES = {'true', 'yes', 'y', '1', 'x'}


def provision_key(resource: str, any_type: str) -> str:
    return f"{resource}:{any_type}"


def _records(frames: Dict[str, pd.DataFrame], sheet: str) -> List[Dict[str, str]]:
    frame = frames.get(sheet)
    if frame is None:
        logger.debug(f"Sheet '{sheet}' not present, treated as empty")
        return []

    frame = frame.copy()
    frame.columns = [str(column).strip() for column in frame.columns]
    missing = [column for column in REQUIRED_COLUMNS[sheet] if column not in frame.columns]
    if missing:
        raise StoreError(f"Sheet '{sheet}' is missing required columns: {missing}")

    frame = frame.dropna(how='all').fillna('')
    return [
        {column: str(value).strip() for column, value in record.items()}
        for record in frame.to_dict('records')
    ]


def _date(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return pd.to_datetime(value).to_pydatetime()
    except (ValueError, TypeError) as e:
        raise StoreError(f"Invalid date '{value}'") from e


def _int(value: str, default: Optional[int] = None) -> Optional[int]:
    if not value:
        return default
    try:
        return int(float(value))
    except ValueError as e:
        raise StoreError(f"Invalid number '{value}'") from e


def _bool(value: str) -> bool:
    return value.lower() in TRUE_VALUES


def _prefixed(record: Dict[str, str], prefix: str) -> Dict[str, List[str]]:
    return {
        column[len(prefix):]: CSVHandler.split_values(value)
        for column, value in record.items()
        if column.startswith(prefix) and CSVHandler.split_values(value)
    }


def _common(record: Dict[str, str]) -> Dict[str, Any]:
    return {
        'key': record['key'],
        'workflow_id': _int(record.get('workflow_id', '')),
        'status': record.get('status') or None,
        'creation_date': _date(record.get('creation_date', '')),
        'realm': record.get('realm') or '/',
        'resources': CSVHandler.split_values(record.get('resources', '')),
        'plain_attrs': _prefixed(record, PLAIN_ATTR_PREFIX),
        'vir_attrs': _prefixed(record, VIRTUAL_ATTR_PREFIX),
    }


def _resource_conf(record: Dict[str, str]) -> Dict[str, Any]:
    conf: Dict[str, Any] = {}
    for column, value in record.items():
        if not column.startswith(CONF_PREFIX) or not value:
            continue
        name = column[len(CONF_PREFIX):]
        if name == 'object_classes':
            conf[name] = dict(
                pair.split('=', 1) for pair in CSVHandler.split_values(value) if '=' in pair
            )
        else:
            conf[name] = value
    return conf


def load_store_from_frames(frames: Dict[str, pd.DataFrame],
                           ldap_defaults: Optional[Dict[str, Any]] = None) -> InMemoryIdentityStore:
    """Build an in-memory store from one DataFrame per workbook sheet"""
    any_types = {'USER': AnyType.user(), 'GROUP': AnyType.group()}
    for record in _records(frames, 'any_types'):
        if record['key'] not in any_types:
            any_types[record['key']] = AnyType(record['key'], AnyTypeKind.ANY_OBJECT)

    def any_type_of(key: str) -> AnyType:
        if key not in any_types:
            raise StoreError(f"Unknown any type '{key}'")
        return any_types[key]

    users = [
        User(
            type=AnyType.user(),
            username=record['username'],
            password=record.get('password') or None,
            last_login_date=_date(record.get('last_login_date', '')),
            change_pwd_date=_date(record.get('change_pwd_date', '')),
            password_history=CSVHandler.split_values(record.get('password_history', '')),
            failed_logins=_int(record.get('failed_logins', ''), 0),
            memberships=CSVHandler.split_values(record.get('memberships', '')),
            **_common(record)
        )
        for record in _records(frames, 'users')
    ]

    groups = [
        Group(type=AnyType.group(), name=record['name'], **_common(record))
        for record in _records(frames, 'groups')
    ]

    any_objects = [
        AnyObject(
            type=any_type_of(record['type']),
            name=record.get('name', ''),
            memberships=CSVHandler.split_values(record.get('memberships', '')),
            **_common(record)
        )
        for record in _records(frames, 'any_objects')
    ]

    resources: Dict[str, ExternalResource] = {}
    for record in _records(frames, 'resources'):
        connector_type = record['connector_type'].lower() or 'csv'
        conf = _resource_conf(record)
        if connector_type == 'ldap' and ldap_defaults:
            conf = {**ldap_defaults, **conf}
        resources[record['key']] = ExternalResource(
            key=record['key'], connector_type=connector_type, connector_conf=conf
        )

    provisions: Dict[str, Provision] = {}
    for record in _records(frames, 'mapping'):
        resource = resources.get(record['resource'])
        if resource is None:
            raise StoreError(f"Mapping refers to unknown resource '{record['resource']}'")
        key = provision_key(record['resource'], record['any_type'])
        provision = provisions.get(key)
        if provision is None:
            provision = Provision(key, any_type_of(record['any_type']), record['object_class'])
            provisions[key] = provision
            resource.provisions.append(provision)

        purpose = record.get('purpose', '').upper() or MappingPurpose.BOTH.value
        try:
            purpose = MappingPurpose(purpose)
        except ValueError as e:
            raise StoreError(f"Invalid mapping purpose '{purpose}'") from e

        provision.mapping_items.append(MappingItem(
            int_attr_name=record['int_attr'],
            ext_attr_name=record['ext_attr'],
            conn_object_key=_bool(record.get('conn_object_key', '')),
            password=_bool(record.get('password', '')),
            purpose=purpose
        ))

    vir_schemas = [
        VirSchema(
            key=record['key'],
            provision_key=provision_key(record['resource'], record['any_type']),
            ext_attr_name=record['ext_attr']
        )
        for record in _records(frames, 'virtual_schemas')
    ]

    return InMemoryIdentityStore(
        users=users,
        groups=groups,
        any_objects=any_objects,
        any_types=any_types.values(),
        resources=resources.values(),
        vir_schemas=vir_schemas
    )


def load_store(file_path: str, ldap_defaults: Optional[Dict[str, Any]] = None) -> InMemoryIdentityStore:
    """Load the identity store workbook at ``file_path``"""
    try:
        frames = pd.read_excel(file_path, sheet_name=None, dtype=str, engine='openpyxl')
    except FileNotFoundError:
        logger.error(f"Store workbook {file_path} not found")
        raise
    except Exception as e:
        raise StoreError(f"Cannot read store workbook {file_path}: {e}") from e

    logger.info(f"Read sheets {sorted(frames)} from {file_path}")
    return load_store_from_frames(frames, ldap_defaults)
