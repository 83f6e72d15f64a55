# =============================================================================
# connectors/ldap_connector.py - LDAP / Active Directory connector
# =============================================================================

from typing import Any, Dict, List, Optional

from ldap3 import ALL, Connection, Server
from ldap3.utils.conv import escape_filter_chars

from core.connector import (
    ACCOUNT_OBJECT_CLASS, ENABLE_NAME, GROUP_OBJECT_CLASS, Connector, ConnectorFactory
)
from core.exceptions import ConnectorError
from core.models import ConnectorObject, ExternalResource, OperationOptions

DEFAULT_OBJECT_CLASSES = {
    ACCOUNT_OBJECT_CLASS: "inetOrgPerson",
    GROUP_OBJECT_CLASS: "groupOfNames",
}

# Active Directory userAccountControl ACCOUNTDISABLE flag
ACCOUNT_DISABLE = 0x2


@ConnectorFactory.register("ldap")
class LDAPConnector(Connector):
    """Reads remote objects from an LDAP directory

    Connector configuration keys: ``server``, ``username``, ``password``,
    ``base_dn``, ``naming_attribute`` (default ``uid``) and ``object_classes``
    mapping connector object classes to LDAP object classes.
    """

    def __init__(self, resource: ExternalResource):
        super().__init__(resource)
        conf = resource.connector_conf
        self.server_url = conf.get("server")
        self.username = conf.get("username")
        self.password = conf.get("password")
        self.base_dn = conf.get("base_dn")
        self.naming_attribute = conf.get("naming_attribute") or "uid"
        self.object_classes = {**DEFAULT_OBJECT_CLASSES, **(conf.get("object_classes") or {})}
        self.connection: Optional[Connection] = None

    def connect(self) -> None:
        """Establish connection to the directory"""
        if not self.server_url or not self.base_dn:
            raise ConnectorError(f"Resource {self.resource.key}: LDAP server and base DN are required")
        try:
            server = Server(self.server_url, get_info=ALL)
            self.connection = Connection(
                server,
                user=self.username,
                password=self.password,
                auto_bind=True
            )
            self.logger.info(f"Connected to {self.server_url} for resource {self.resource.key}")
        except Exception as e:
            raise ConnectorError(f"Failed to connect to {self.server_url}: {e}") from e

    def disconnect(self) -> None:
        """Close directory connection"""
        if self.connection:
            self.connection.unbind()
            self.connection = None
            self.logger.info(f"Disconnected from {self.server_url}")

    def build_filter(self, object_class: str, uid: str) -> str:
        ldap_class = self.object_classes.get(object_class, object_class)
        return (
            f"(&(objectClass={escape_filter_chars(ldap_class)})"
            f"({self.naming_attribute}={escape_filter_chars(uid)}))"
        )

    def get_object(self, object_class: str, uid: str,
                   options: OperationOptions) -> Optional[ConnectorObject]:
        if not self.connection:
            raise ConnectorError("Not connected to the directory")

        attributes = [name for name in options.attributes_to_get if not name.startswith("__")]
        wants_enable = ENABLE_NAME in options.attributes_to_get
        added_control = wants_enable and "userAccountControl" not in attributes
        if added_control:
            attributes.append("userAccountControl")

        search_filter = self.build_filter(object_class, uid)
        self.connection.search(
            search_base=self.base_dn,
            search_filter=search_filter,
            attributes=attributes or [self.naming_attribute]
        )

        if not self.connection.entries:
            self.logger.debug(f"No entry for {search_filter} under {self.base_dn}")
            return None
        if len(self.connection.entries) > 1:
            self.logger.warning(f"Multiple entries found for {uid}, using first match")

        entry = self.connection.entries[0]
        values: Dict[str, List[Any]] = {}
        for name in attributes:
            if name == "userAccountControl" and added_control:
                continue
            if name in entry.entry_attributes and entry[name].values:
                values[name] = list(entry[name].values)

        if wants_enable and "userAccountControl" in entry.entry_attributes and entry["userAccountControl"].value:
            values[ENABLE_NAME] = [self._is_account_active(int(entry["userAccountControl"].value))]

        return ConnectorObject(uid=uid, object_class=object_class, attributes=values)

    def _is_account_active(self, user_account_control: int) -> bool:
        """Check if account is active based on userAccountControl flags"""
        return not bool(user_account_control & ACCOUNT_DISABLE)
