# =============================================================================
# core/store.py - Identity store DAOs and in-memory store
# =============================================================================

from abc import ABC, abstractmethod
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence
import logging

from core.exceptions import StoreError
from core.models import (
    AnyObject, AnyType, AnyTypeKind, ExternalResource, Group, IdentityObject,
    Provision, User, VirSchema
)
from core.search import SearchCond

# All realms, unrestricted
FULL_ADMIN_REALMS: FrozenSet[str] = frozenset({"/"})


class UserDAO(ABC):

    @abstractmethod
    def find_all(self) -> List[User]:
        pass


class GroupDAO(ABC):

    @abstractmethod
    def find_all(self) -> List[Group]:
        pass

    @abstractmethod
    def find(self, key: str) -> Optional[Group]:
        pass


class AnyTypeDAO(ABC):

    @abstractmethod
    def find_all(self) -> List[AnyType]:
        pass

    def find_user(self) -> AnyType:
        return AnyType.user()

    def find_group(self) -> AnyType:
        return AnyType.group()


class VirSchemaDAO(ABC):

    @abstractmethod
    def find_by_provision(self, provision: Provision) -> List[VirSchema]:
        pass


class ExternalResourceDAO(ABC):

    @abstractmethod
    def find(self, key: str) -> Optional[ExternalResource]:
        pass


class AnySearchDAO(ABC):

    @abstractmethod
    def count(self, realms: FrozenSet[str], cond: Optional[SearchCond], kind: AnyTypeKind) -> int:
        """Count objects of ``kind`` matching ``cond`` (all objects when None)"""
        pass

    @abstractmethod
    def search(self, realms: FrozenSet[str], cond: Optional[SearchCond], page: int,
               page_size: int, order_by: Sequence, kind: AnyTypeKind) -> List[IdentityObject]:
        """Return one 1-based page of objects of ``kind`` matching ``cond``"""
        pass


class AnyUtils:
    """Resource resolution helpers for identity objects"""

    def __init__(self, resource_dao: ExternalResourceDAO, group_dao: GroupDAO):
        self.resource_dao = resource_dao
        self.group_dao = group_dao
        self.logger = logging.getLogger(__name__)

    def get_all_resources(self, any_obj: IdentityObject) -> List[ExternalResource]:
        """Directly assigned resources plus those inherited through group memberships"""
        keys = list(any_obj.resources)
        for group_key in getattr(any_obj, 'memberships', []):
            group = self.group_dao.find(group_key)
            if group is None:
                self.logger.warning(f"Group {group_key} referenced by {any_obj.key} not found")
                continue
            keys.extend(group.resources)

        resources = []
        for key in dict.fromkeys(keys):
            resource = self.resource_dao.find(key)
            if resource is None:
                self.logger.warning(f"Resource {key} referenced by {any_obj.key} not found")
                continue
            resources.append(resource)
        return resources


def _in_realms(any_obj: IdentityObject, realms: FrozenSet[str]) -> bool:
    for realm in realms:
        if realm == "/" or any_obj.realm == realm or any_obj.realm.startswith(realm.rstrip("/") + "/"):
            return True
    return False


class InMemoryUserDAO(UserDAO):

    def __init__(self, users: List[User]):
        self.users = users

    def find_all(self) -> List[User]:
        return list(self.users)


class InMemoryGroupDAO(GroupDAO):

    def __init__(self, groups: List[Group]):
        self.groups = groups
        self._by_key = {group.key: group for group in groups}

    def find_all(self) -> List[Group]:
        return list(self.groups)

    def find(self, key: str) -> Optional[Group]:
        return self._by_key.get(key)


class InMemoryAnyTypeDAO(AnyTypeDAO):

    def __init__(self, any_types: Iterable[AnyType]):
        self.any_types: List[AnyType] = [AnyType.user(), AnyType.group()]
        for any_type in any_types:
            if all(any_type.key != known.key for known in self.any_types):
                self.any_types.append(any_type)

    def find_all(self) -> List[AnyType]:
        return list(self.any_types)


class InMemoryVirSchemaDAO(VirSchemaDAO):

    def __init__(self, vir_schemas: List[VirSchema]):
        self.vir_schemas = vir_schemas

    def find_by_provision(self, provision: Provision) -> List[VirSchema]:
        return [schema for schema in self.vir_schemas if schema.provision_key == provision.key]


class InMemoryExternalResourceDAO(ExternalResourceDAO):

    def __init__(self, resources: List[ExternalResource]):
        self.resources: Dict[str, ExternalResource] = {resource.key: resource for resource in resources}

    def find(self, key: str) -> Optional[ExternalResource]:
        return self.resources.get(key)


class InMemoryAnySearchDAO(AnySearchDAO):

    def __init__(self, users: List[User], groups: List[Group], any_objects: List[AnyObject]):
        self.populations = {
            AnyTypeKind.USER: users,
            AnyTypeKind.GROUP: groups,
            AnyTypeKind.ANY_OBJECT: any_objects,
        }

    def _matching(self, realms: FrozenSet[str], cond: Optional[SearchCond],
                  kind: AnyTypeKind) -> List[IdentityObject]:
        try:
            return [
                any_obj for any_obj in self.populations[kind]
                if _in_realms(any_obj, realms) and (cond is None or cond.matches(any_obj))
            ]
        except Exception as e:
            raise StoreError(f"Search on {kind.value} failed: {e}") from e

    def count(self, realms: FrozenSet[str], cond: Optional[SearchCond], kind: AnyTypeKind) -> int:
        return len(self._matching(realms, cond, kind))

    def search(self, realms: FrozenSet[str], cond: Optional[SearchCond], page: int,
               page_size: int, order_by: Sequence, kind: AnyTypeKind) -> List[IdentityObject]:
        if page < 1 or page_size < 1:
            raise StoreError(f"Invalid page {page} with page size {page_size}")
        start = (page - 1) * page_size
        return self._matching(realms, cond, kind)[start:start + page_size]


class IdentityStore:
    """DAOs the reconciliation report reads from"""
    user_dao: UserDAO
    group_dao: GroupDAO
    any_type_dao: AnyTypeDAO
    vir_schema_dao: VirSchemaDAO
    resource_dao: ExternalResourceDAO
    search_dao: AnySearchDAO
    any_utils: AnyUtils


class InMemoryIdentityStore(IdentityStore):
    """Identity store kept in memory, exposing one DAO per concern"""

    def __init__(self, users: Iterable[User] = (), groups: Iterable[Group] = (),
                 any_objects: Iterable[AnyObject] = (), any_types: Iterable[AnyType] = (),
                 resources: Iterable[ExternalResource] = (), vir_schemas: Iterable[VirSchema] = ()):
        users, groups, any_objects = list(users), list(groups), list(any_objects)

        self.user_dao = InMemoryUserDAO(users)
        self.group_dao = InMemoryGroupDAO(groups)
        self.any_type_dao = InMemoryAnyTypeDAO(any_types)
        self.vir_schema_dao = InMemoryVirSchemaDAO(list(vir_schemas))
        self.resource_dao = InMemoryExternalResourceDAO(list(resources))
        self.search_dao = InMemoryAnySearchDAO(users, groups, any_objects)
        self.any_utils = AnyUtils(self.resource_dao, self.group_dao)

        logging.getLogger(self.__class__.__name__).info(
            f"Store loaded: {len(users)} users, {len(groups)} groups, {len(any_objects)} any objects, "
            f"{len(self.resource_dao.resources)} resources"
        )
