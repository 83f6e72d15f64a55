# =============================================================================
# connectors/csv_connector.py - Target-system CSV export connector
# =============================================================================

from typing import Dict, Optional, Tuple

from core.connector import Connector, ConnectorFactory
from core.exceptions import ConnectorError
from core.models import ConnectorObject, ExternalResource, OperationOptions
from utils.csv_utils import CSVHandler, MULTI_VALUE_SEPARATOR


@ConnectorFactory.register("csv")
class CSVConnector(Connector):
    """Reads remote objects from a CSV export of the target system

    Connector configuration keys: ``path``, ``key_column`` (default ``uid``),
    ``object_class_column`` (optional; without it every row matches any
    object class) and ``multi_value_separator`` (default ``|``).
    """

    def __init__(self, resource: ExternalResource):
        super().__init__(resource)
        conf = resource.connector_conf
        self.path = conf.get("path")
        self.key_column = conf.get("key_column") or "uid"
        self.object_class_column = conf.get("object_class_column") or None
        self.separator = conf.get("multi_value_separator") or MULTI_VALUE_SEPARATOR
        self.rows: Dict[Tuple[Optional[str], str], Dict[str, str]] = {}

    def connect(self) -> None:
        if not self.path:
            raise ConnectorError(f"Resource {self.resource.key}: CSV path is required")

        try:
            data, headers = CSVHandler.read_csv(self.path)
        except Exception as e:
            raise ConnectorError(f"Cannot read export {self.path}: {e}") from e

        if self.key_column not in headers:
            raise ConnectorError(f"Key column '{self.key_column}' not found in {self.path}")

        self.rows = {}
        for row in data:
            key = row.get(self.key_column, '')
            if not key:
                continue
            object_class = row.get(self.object_class_column) if self.object_class_column else None
            if (object_class, key) in self.rows:
                self.logger.warning(f"Duplicate key {key} in {self.path}, keeping first row")
                continue
            self.rows[(object_class, key)] = row

        self.logger.info(f"Indexed {len(self.rows)} objects of resource {self.resource.key} from {self.path}")

    def disconnect(self) -> None:
        self.rows = {}

    def get_object(self, object_class: str, uid: str,
                   options: OperationOptions) -> Optional[ConnectorObject]:
        row = self.rows.get((object_class if self.object_class_column else None, uid))
        if row is None:
            return None

        skip = {self.key_column, self.object_class_column}
        names = options.attributes_to_get or [name for name in row if name not in skip]

        attributes = {}
        for name in names:
            values = CSVHandler.split_values(row.get(name, ''), self.separator)
            if values:
                attributes[name] = values

        return ConnectorObject(uid=uid, object_class=object_class, attributes=attributes)
