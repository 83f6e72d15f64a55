# =============================================================================
# connectors/__init__.py - Importing this package registers every connector
# =============================================================================

from connectors.csv_connector import CSVConnector
from connectors.ldap_connector import LDAPConnector

__all__ = ["CSVConnector", "LDAPConnector"]
