# =============================================================================
# core/models.py - Identity, mapping and finding data models
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, FrozenSet


class AnyTypeKind(Enum):
    """Enumeration of identity object kinds"""
    USER = "USER"
    GROUP = "GROUP"
    ANY_OBJECT = "ANY_OBJECT"


@dataclass(frozen=True)
class AnyType:
    """Any type: USER, GROUP or a user-defined any-object type"""
    key: str
    kind: AnyTypeKind

    @classmethod
    def user(cls) -> "AnyType":
        return cls("USER", AnyTypeKind.USER)

    @classmethod
    def group(cls) -> "AnyType":
        return cls("GROUP", AnyTypeKind.GROUP)


@dataclass
class IdentityObject:
    """Identity object held in the authoritative store"""
    key: str
    type: AnyType
    workflow_id: Optional[int] = None
    status: Optional[str] = None
    creation_date: Optional[datetime] = None
    realm: str = "/"
    resources: List[str] = field(default_factory=list)
    plain_attrs: Dict[str, List[Any]] = field(default_factory=dict)
    vir_attrs: Dict[str, List[Any]] = field(default_factory=dict)

    @property
    def kind(self) -> AnyTypeKind:
        return self.type.kind


@dataclass
class User(IdentityObject):
    """User identity object"""
    username: str = ""
    password: Optional[str] = None
    last_login_date: Optional[datetime] = None
    change_pwd_date: Optional[datetime] = None
    password_history: List[str] = field(default_factory=list)
    failed_logins: int = 0
    memberships: List[str] = field(default_factory=list)


@dataclass
class Group(IdentityObject):
    """Group identity object"""
    name: str = ""


@dataclass
class AnyObject(IdentityObject):
    """Generic identity object of a user-defined any type"""
    name: str = ""
    memberships: List[str] = field(default_factory=list)


class MappingPurpose(Enum):
    """Direction(s) in which a mapping item is used"""
    PROPAGATION = "PROPAGATION"
    PULL = "PULL"
    BOTH = "BOTH"
    NONE = "NONE"


@dataclass(frozen=True)
class MappingItem:
    """Association between a local attribute and a remote attribute"""
    int_attr_name: str
    ext_attr_name: str
    conn_object_key: bool = False
    password: bool = False
    purpose: MappingPurpose = MappingPurpose.BOTH


@dataclass(frozen=True)
class VirSchema:
    """Virtual schema read through from a provision"""
    key: str
    provision_key: str
    ext_attr_name: str

    def as_linking_mapping_item(self) -> MappingItem:
        """Read-only mapping item used to request the virtual attribute"""
        return MappingItem(
            int_attr_name=self.key,
            ext_attr_name=self.ext_attr_name,
            purpose=MappingPurpose.NONE
        )


@dataclass
class Provision:
    """Mapping of an any type onto a remote object class of one resource"""
    key: str
    any_type: AnyType
    object_class: str
    mapping_items: List[MappingItem] = field(default_factory=list)


@dataclass
class ExternalResource:
    """Downstream system identity objects are projected onto"""
    key: str
    connector_type: str = "csv"
    connector_conf: Dict[str, Any] = field(default_factory=dict)
    provisions: List[Provision] = field(default_factory=list)

    def get_provision(self, any_type: AnyType) -> Optional[Provision]:
        for provision in self.provisions:
            if provision.any_type.key == any_type.key:
                return provision
        return None


@dataclass
class ConnectorObject:
    """Snapshot of a remote object as returned by a connector"""
    uid: str
    object_class: str
    attributes: Dict[str, List[Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class OperationOptions:
    """Options passed to a connector read"""
    attributes_to_get: tuple = ()


@dataclass(frozen=True)
class Missing:
    """Object expected on a resource but not found there"""
    resource: str
    conn_object_key_value: str


@dataclass(frozen=True)
class Misaligned(Missing):
    """Object found on a resource with one attribute differing"""
    name: str = ""
    on_syncope: FrozenSet[str] = frozenset()
    on_resource: FrozenSet[str] = frozenset()


class Feature(Enum):
    """Per-object attributes that can be included in the report"""
    KEY = "key"
    USERNAME = "username"
    GROUP_NAME = "groupName"
    WORKFLOW_ID = "workflowId"
    STATUS = "status"
    CREATION_DATE = "creationDate"
    LAST_LOGIN_DATE = "lastLoginDate"
    CHANGE_PWD_DATE = "changePwdDate"
    PASSWORD_HISTORY_SIZE = "passwordHistorySize"
    FAILED_LOGIN_COUNT = "failedLoginCount"


def _default_features() -> List[Feature]:
    return [Feature.KEY, Feature.USERNAME, Feature.GROUP_NAME]


@dataclass(frozen=True)
class ReconciliationReportletConf:
    """Configuration of a reconciliation reportlet run"""
    name: str = "reconciliation"
    features: List[Feature] = field(default_factory=_default_features)
    user_matching_cond: Optional[str] = None
    group_matching_cond: Optional[str] = None
    any_object_matching_cond: Optional[str] = None


@dataclass
class ReconciliationStats:
    """Statistics for a reconciliation run"""
    objects_inspected: int = 0
    objects_reported: int = 0
    missing: int = 0
    misaligned: int = 0
    connector_failures: int = 0
    resources_skipped: int = 0

    @property
    def findings(self) -> int:
        return self.missing + self.misaligned
