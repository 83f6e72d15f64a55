# =============================================================================
# core/diff.py - Attribute set comparison between source and resource
# =============================================================================

from typing import Any, Collection, Dict, FrozenSet, Iterable, Mapping, Set

from core.connector import ENABLE_NAME, PASSWORD_NAME
from core.models import Misaligned

EXCLUDED_REMOTE_ATTRIBUTES = frozenset({PASSWORD_NAME, ENABLE_NAME})

ValueSets = Dict[str, FrozenSet[str]]


class DiffEngine:
    """Compares the source projection with a remote snapshot, attribute by attribute"""

    @staticmethod
    def to_value_sets(attrs: Mapping[str, Iterable[Any]]) -> ValueSets:
        """Flatten multi-valued attributes to sets of stringified values"""
        return {
            name: frozenset(str(value) for value in (values or []) if value is not None)
            for name, values in attrs.items()
        }

    @classmethod
    def filter_remote(cls, attrs: Mapping[str, Iterable[Any]], exclude: Collection[str] = ()) -> ValueSets:
        """Remote attributes minus the password and enable/disable attributes and ``exclude``"""
        return cls.to_value_sets({
            name: values for name, values in attrs.items()
            if name not in EXCLUDED_REMOTE_ATTRIBUTES and name not in exclude
        })

    @staticmethod
    def compare(resource: str, conn_object_key_value: str,
                source: ValueSets, remote: ValueSets) -> Set[Misaligned]:
        misaligned = set()

        for name in source.keys() - remote.keys():
            misaligned.add(Misaligned(resource, conn_object_key_value, name, source[name], frozenset()))

        for name, on_resource in remote.items():
            if name in source:
                if source[name] != on_resource:
                    misaligned.add(Misaligned(resource, conn_object_key_value, name, source[name], on_resource))
            else:
                misaligned.add(Misaligned(resource, conn_object_key_value, name, frozenset(), on_resource))

        return misaligned
