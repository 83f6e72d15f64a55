# =============================================================================
# core/emitter.py - Streaming XML emission of reconciliation findings
# =============================================================================

from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple
from xml.sax.handler import ContentHandler
from xml.sax.xmlreader import AttributesImpl

from core.models import (
    AnyTypeKind, Feature, IdentityObject, Misaligned, Missing
)

XSD_STRING = "xs:string"
XSD_INT = "xs:int"
XSD_LONG = "xs:long"
XSD_DATETIME = "xs:dateTime"

ELEMENT_NAMES = {
    AnyTypeKind.USER: "user",
    AnyTypeKind.GROUP: "group",
    AnyTypeKind.ANY_OBJECT: "anyObject",
}


class TypedAttributes(AttributesImpl):
    """SAX attributes carrying an XSD type hint per attribute"""

    def __init__(self, attrs: Optional[Dict[str, str]] = None, types: Optional[Dict[str, str]] = None):
        super().__init__(dict(attrs or {}))
        self._types = dict(types or {})

    def add(self, name: str, xsd_type: str, value: str) -> None:
        self._attrs[name] = value
        self._types[name] = xsd_type

    def getType(self, name):
        return self._types.get(name, "CDATA")


def format_date(value: Optional[datetime]) -> str:
    """Format as yyyy-MM-ddTHH:mm:ss.SSS+hhmm, empty string for None"""
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return f"{value.strftime('%Y-%m-%dT%H:%M:%S')}.{value.microsecond // 1000:03d}{value.strftime('%z')}"


def _number(value) -> str:
    return "" if value is None else str(value)


ALL_KINDS = frozenset(AnyTypeKind)
USERS_ONLY = frozenset({AnyTypeKind.USER})
GROUPS_ONLY = frozenset({AnyTypeKind.GROUP})

# (XSD type, kinds the feature applies to, value renderer)
FEATURE_RENDERERS: Dict[Feature, Tuple[str, FrozenSet[AnyTypeKind], Callable[[IdentityObject], str]]] = {
    Feature.KEY: (XSD_LONG, ALL_KINDS, lambda any_obj: str(any_obj.key)),
    Feature.USERNAME: (XSD_STRING, USERS_ONLY, lambda user: user.username),
    Feature.GROUP_NAME: (XSD_STRING, GROUPS_ONLY, lambda group: group.name),
    Feature.WORKFLOW_ID: (XSD_LONG, ALL_KINDS, lambda any_obj: _number(any_obj.workflow_id)),
    Feature.STATUS: (XSD_STRING, ALL_KINDS, lambda any_obj: any_obj.status),
    Feature.CREATION_DATE: (XSD_DATETIME, ALL_KINDS, lambda any_obj: format_date(any_obj.creation_date)),
    Feature.LAST_LOGIN_DATE: (XSD_DATETIME, USERS_ONLY, lambda user: format_date(user.last_login_date)),
    Feature.CHANGE_PWD_DATE: (XSD_DATETIME, USERS_ONLY, lambda user: format_date(user.change_pwd_date)),
    Feature.PASSWORD_HISTORY_SIZE: (XSD_INT, USERS_ONLY, lambda user: str(len(user.password_history))),
    Feature.FAILED_LOGIN_COUNT: (XSD_INT, USERS_ONLY, lambda user: _number(user.failed_logins)),
}


def feature_attributes(any_obj: IdentityObject, features: Iterable[Feature]) -> TypedAttributes:
    """Per-object attributes in feature order; inapplicable features are omitted"""
    atts = TypedAttributes()
    for feature in features:
        xsd_type, kinds, render = FEATURE_RENDERERS[feature]
        if any_obj.kind not in kinds:
            continue
        value = render(any_obj)
        if value is not None:
            atts.add(feature.value, xsd_type, value)
    return atts


class ReportEmitter:
    """Writes reconciliation elements to a SAX content handler"""

    def __init__(self, handler: ContentHandler, features: List[Feature]):
        self.handler = handler
        self.features = list(features)

    def start_kind(self, kind: AnyTypeKind, any_type_key: Optional[str] = None) -> None:
        atts = TypedAttributes()
        if any_type_key is not None:
            atts.add("type", XSD_STRING, any_type_key)
        self.handler.startElement(ELEMENT_NAMES[kind] + "s", atts)

    def end_kind(self, kind: AnyTypeKind) -> None:
        self.handler.endElement(ELEMENT_NAMES[kind] + "s")

    def _values(self, element: str, values: Iterable[str]) -> None:
        self.handler.startElement(element, TypedAttributes())
        for value in sorted(values):
            self.handler.startElement("value", TypedAttributes())
            self.handler.characters(str(value))
            self.handler.endElement("value")
        self.handler.endElement(element)

    def emit(self, any_obj: IdentityObject, missing: Set[Missing], misaligned: Set[Misaligned]) -> None:
        """Write one object element: missing findings first, then misaligned ones"""
        element = ELEMENT_NAMES[any_obj.kind]
        self.handler.startElement(element, feature_attributes(any_obj, self.features))

        for item in sorted(missing, key=lambda m: (m.resource, m.conn_object_key_value)):
            atts = TypedAttributes()
            atts.add("resource", XSD_STRING, item.resource)
            atts.add("connObjectKeyValue", XSD_STRING, item.conn_object_key_value)
            self.handler.startElement("missing", atts)
            self.handler.endElement("missing")

        for item in sorted(misaligned, key=lambda m: (m.resource, m.conn_object_key_value, m.name)):
            atts = TypedAttributes()
            atts.add("resource", XSD_STRING, item.resource)
            atts.add("connObjectKeyValue", XSD_STRING, item.conn_object_key_value)
            atts.add("name", XSD_STRING, item.name)
            self.handler.startElement("misaligned", atts)
            self._values("onSyncope", item.on_syncope)
            self._values("onResource", item.on_resource)
            self.handler.endElement("misaligned")

        self.handler.endElement(element)
