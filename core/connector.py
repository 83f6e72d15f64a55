# =============================================================================
# core/connector.py - Connector abstraction, factory and read gateway
# =============================================================================

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Type

from core.exceptions import ConnectorError
from core.models import ConnectorObject, ExternalResource, OperationOptions

# Reserved operational attribute names
PASSWORD_NAME = "__PASSWORD__"
ENABLE_NAME = "__ENABLE__"

ACCOUNT_OBJECT_CLASS = "__ACCOUNT__"
GROUP_OBJECT_CLASS = "__GROUP__"


class Connector(ABC):
    """Read access to the objects of one external resource"""

    def __init__(self, resource: ExternalResource):
        self.resource = resource
        self.logger = logging.getLogger(self.__class__.__name__)

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

    def connect(self) -> None:
        """Open the underlying connection, if any"""

    def disconnect(self) -> None:
        """Release the underlying connection, if any"""

    @abstractmethod
    def get_object(self, object_class: str, uid: str,
                   options: OperationOptions) -> Optional[ConnectorObject]:
        """Read one object, None when it does not exist"""
        pass


class ConnectorFactory:
    """Builds one connected connector per resource and run

    A resource whose connector could not be built or connected is remembered
    as failed and not retried until the factory is closed.
    """

    registry: Dict[str, Callable[[ExternalResource], Connector]] = {}

    def __init__(self, registry: Optional[Dict[str, Callable[[ExternalResource], Connector]]] = None):
        self.registry = dict(self.registry if registry is None else registry)
        self.connectors: Dict[str, Connector] = {}
        self.failed: Dict[str, Exception] = {}
        self.logger = logging.getLogger(self.__class__.__name__)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @classmethod
    def register(cls, connector_type: str) -> Callable[[Type[Connector]], Type[Connector]]:
        """Class decorator registering a connector implementation by type"""
        def decorator(connector_class: Type[Connector]) -> Type[Connector]:
            cls.registry[connector_type] = connector_class
            return connector_class
        return decorator

    def get_connector(self, resource: ExternalResource) -> Connector:
        connector = self.connectors.get(resource.key)
        if connector is not None:
            return connector

        cause = self.failed.get(resource.key)
        if cause is not None:
            raise ConnectorError(f"Resource {resource.key} unavailable for this run: {cause}")

        builder = self.registry.get(resource.connector_type)
        if builder is None:
            valid = ", ".join(sorted(self.registry))
            raise ValueError(
                f"Unknown connector type '{resource.connector_type}' for resource {resource.key}. "
                f"Valid types: {valid}"
            )
        try:
            connector = builder(resource)
            connector.connect()
        except Exception as e:
            self.failed[resource.key] = e
            self.logger.error(f"Connector {resource.connector_type} for resource {resource.key} failed to connect: {e}")
            raise ConnectorError(f"Resource {resource.key} unavailable: {e}") from e

        self.connectors[resource.key] = connector
        self.logger.info(f"Connector {resource.connector_type} ready for resource {resource.key}")
        return connector

    def close(self) -> None:
        for key, connector in self.connectors.items():
            try:
                connector.disconnect()
            except Exception as e:
                self.logger.error(f"Error closing connector for resource {key}: {e}")
        self.connectors.clear()
        self.failed.clear()


class ConnectorGateway:
    """Remote reads isolated per (object, resource): failures read as absent"""

    def __init__(self, connector_factory: ConnectorFactory):
        self.connector_factory = connector_factory
        self.failures = 0
        self.logger = logging.getLogger(self.__class__.__name__)

    def read(self, resource: ExternalResource, object_class: str, key_value: str,
             options: OperationOptions) -> Optional[ConnectorObject]:
        try:
            connector = self.connector_factory.get_connector(resource)
            return connector.get_object(object_class, key_value, options)
        except Exception as e:
            self.failures += 1
            self.logger.error(
                f"Read of {key_value} with class {object_class} on resource {resource.key} failed: {e}"
            )
            return None
