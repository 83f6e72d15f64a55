# =============================================================================
# core/mapping.py - Provision mapping resolution and source projection
# =============================================================================

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from core.models import (
    ExternalResource, IdentityObject, MappingItem, MappingPurpose, OperationOptions, Provision
)
from core.search import attribute_values
from core.store import VirSchemaDAO


PROPAGATING_PURPOSES = (MappingPurpose.PROPAGATION, MappingPurpose.BOTH)


class MappingUtils:
    """Helpers projecting identity objects through provisions"""

    @staticmethod
    def get_conn_object_key_item(provision: Optional[Provision]) -> Optional[MappingItem]:
        if provision is None:
            return None
        for item in provision.mapping_items:
            if item.conn_object_key:
                return item
        return None

    @staticmethod
    def get_int_values(any_obj: IdentityObject, int_attr_name: str) -> List[Any]:
        """Values of a field, plain attribute or virtual attribute"""
        values = attribute_values(any_obj, int_attr_name)
        if values:
            return values
        return [value for value in any_obj.vir_attrs.get(int_attr_name, []) if value is not None]

    @classmethod
    def get_conn_object_key_value(cls, any_obj: IdentityObject, provision: Provision) -> Optional[str]:
        item = cls.get_conn_object_key_item(provision)
        if item is None:
            return None
        values = cls.get_int_values(any_obj, item.int_attr_name)
        return str(values[0]) if values else None

    @classmethod
    def prepare_attrs(cls, any_obj: IdentityObject, provision: Provision) -> Dict[str, List[Any]]:
        """Render the object through the provision as it would be propagated

        The key item is the lookup identity, not a compared attribute; password
        items are never projected.
        """
        attrs: Dict[str, List[Any]] = {}
        for item in provision.mapping_items:
            if item.conn_object_key or item.password or item.purpose not in PROPAGATING_PURPOSES:
                continue

            values = cls.get_int_values(any_obj, item.int_attr_name)
            if values:
                attrs.setdefault(item.ext_attr_name, []).extend(values)
        return attrs

    @staticmethod
    def build_operation_options(mapping_items: Iterable[MappingItem]) -> OperationOptions:
        names = [item.ext_attr_name for item in mapping_items]
        return OperationOptions(attributes_to_get=tuple(dict.fromkeys(names)))


@dataclass
class ResolvedProvision:
    """Everything needed to read and compare one object on one resource"""
    resource: ExternalResource
    provision: Provision
    object_class: str
    conn_object_key_value: str
    mapping_items: List[MappingItem]

    @property
    def key_attr_name(self) -> str:
        return MappingUtils.get_conn_object_key_item(self.provision).ext_attr_name


class MappingResolver:
    """Resolves the provision of an identity object on an external resource"""

    def __init__(self, vir_schema_dao: VirSchemaDAO):
        self.vir_schema_dao = vir_schema_dao
        self.logger = logging.getLogger(self.__class__.__name__)

    def resolve(self, any_obj: IdentityObject, resource: ExternalResource) -> Optional[ResolvedProvision]:
        """Return the resolved provision, or None when the resource must be skipped

        An object without a key value still resolves, with an empty key value.
        """
        provision = resource.get_provision(any_obj.type)
        if provision is None:
            self.logger.debug(f"No provision for {any_obj.type.key} on resource {resource.key}")
            return None

        if MappingUtils.get_conn_object_key_item(provision) is None:
            self.logger.warning(f"Provision {provision.key} on resource {resource.key} has no key item")
            return None

        conn_object_key_value = MappingUtils.get_conn_object_key_value(any_obj, provision) or ""
        if not conn_object_key_value:
            self.logger.warning(f"Empty connector object key value for {any_obj.key} on resource {resource.key}")

        linking_items = [
            vir_schema.as_linking_mapping_item()
            for vir_schema in self.vir_schema_dao.find_by_provision(provision)
        ]

        return ResolvedProvision(
            resource=resource,
            provision=provision,
            object_class=provision.object_class,
            conn_object_key_value=conn_object_key_value,
            mapping_items=list(provision.mapping_items) + linking_items
        )
