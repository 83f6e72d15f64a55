# =============================================================================
# core/reportlet.py - Reconciliation reportlet
# =============================================================================

import logging
import threading
from typing import Callable, Optional, Set, Tuple
from xml.sax.handler import ContentHandler

from core.connector import ConnectorFactory, ConnectorGateway
from core.diff import DiffEngine
from core.emitter import ReportEmitter, TypedAttributes, XSD_STRING
from core.exceptions import InvalidConfigurationError, ReportCancelledError, ReportException, SinkError
from core.mapping import MappingResolver, MappingUtils
from core.models import (
    AnyTypeKind, IdentityObject, Misaligned, Missing, ReconciliationReportletConf, ReconciliationStats
)
from core.population import PAGE_SIZE, PopulationIterator
from core.search import AnyTypeCond, SearchCond, SearchCondConverter
from core.store import IdentityStore

FindingsListener = Callable[[IdentityObject, Set[Missing], Set[Misaligned]], None]


class GuardedContentHandler(ContentHandler):
    """Forwards events to a content handler, reporting its failures as SinkError"""

    def __init__(self, handler: ContentHandler):
        super().__init__()
        self.handler = handler

    def _forward(self, event: str, *args) -> None:
        try:
            getattr(self.handler, event)(*args)
        except SinkError:
            raise
        except Exception as e:
            raise SinkError(f"Content sink rejected {event}{args[:1]}: {e}") from e

    def startDocument(self):
        self._forward("startDocument")

    def endDocument(self):
        self._forward("endDocument")

    def startElement(self, name, attrs):
        self._forward("startElement", name, attrs)

    def endElement(self, name):
        self._forward("endElement", name)

    def characters(self, content):
        self._forward("characters", content)


def _convert(expression: Optional[str]) -> Optional[SearchCond]:
    if expression is None or not expression.strip():
        return None
    return SearchCondConverter.convert(expression)


class ReconciliationReportlet:
    """Reports identity objects missing or misaligned on their external resources"""

    def __init__(self, store: IdentityStore, connector_factory: ConnectorFactory,
                 page_size: int = PAGE_SIZE, cancel_event: Optional[threading.Event] = None,
                 listener: Optional[FindingsListener] = None):
        self.store = store
        self.resolver = MappingResolver(store.vir_schema_dao)
        self.gateway = ConnectorGateway(connector_factory)
        self.iterator = PopulationIterator(store.search_dao, page_size, cancel_event)
        self.listener = listener
        self.stats = ReconciliationStats()
        self.logger = logging.getLogger(self.__class__.__name__)

    def extract(self, conf: ReconciliationReportletConf, handler: ContentHandler) -> ReconciliationStats:
        """Write the reportlet element for ``conf`` and return the run statistics"""
        if not isinstance(conf, ReconciliationReportletConf):
            raise InvalidConfigurationError(f"Invalid configuration provided: {type(conf).__name__}")

        self.logger.info(f"Starting {self.__class__.__name__} '{conf.name}'")
        self.stats = ReconciliationStats()
        self.gateway.failures = 0

        user_cond = _convert(conf.user_matching_cond)
        group_cond = _convert(conf.group_matching_cond)
        any_object_cond = _convert(conf.any_object_matching_cond)

        sink = GuardedContentHandler(handler)
        emitter = ReportEmitter(sink, conf.features)

        try:
            atts = TypedAttributes()
            atts.add("class", XSD_STRING, self.__class__.__name__)
            atts.add("name", XSD_STRING, conf.name)
            sink.startElement("reportlet", atts)

            self._extract_kind(emitter, AnyTypeKind.USER, user_cond)
            self._extract_kind(emitter, AnyTypeKind.GROUP, group_cond)

            any_type_dao = self.store.any_type_dao
            for any_type in any_type_dao.find_all():
                if any_type in (any_type_dao.find_user(), any_type_dao.find_group()):
                    continue

                type_cond = SearchCond.get_leaf_cond(AnyTypeCond(any_type.key))
                cond = type_cond if any_object_cond is None else SearchCond.get_and_cond(type_cond, any_object_cond)
                self._extract_kind(emitter, AnyTypeKind.ANY_OBJECT, cond, any_type.key)

            sink.endElement("reportlet")
        except ReportException:
            self.logger.error(f"Reportlet '{conf.name}' aborted")
            raise
        except Exception as e:
            self.logger.error(f"Reportlet '{conf.name}' failed: {e}")
            raise ReportException(f"Reportlet '{conf.name}' failed: {e}") from e

        self.stats.connector_failures = self.gateway.failures
        self.log_statistics()
        return self.stats

    def _extract_kind(self, emitter: ReportEmitter, kind: AnyTypeKind, cond: Optional[SearchCond],
                      any_type_key: Optional[str] = None) -> None:
        emitter.start_kind(kind, any_type_key)

        for any_obj in self.iterator.iterate(kind, cond):
            self.stats.objects_inspected += 1
            missing, misaligned = self.reconcile(any_obj)
            if missing or misaligned:
                self.stats.objects_reported += 1
                self.stats.missing += len(missing)
                self.stats.misaligned += len(misaligned)
                emitter.emit(any_obj, missing, misaligned)
                if self.listener is not None:
                    self.listener(any_obj, missing, misaligned)

        if self.iterator.cancelled:
            raise ReportCancelledError(
                f"Cancelled after {self.stats.objects_inspected} objects, {kind.value} population incomplete"
            )

        emitter.end_kind(kind)

    def reconcile(self, any_obj: IdentityObject) -> Tuple[Set[Missing], Set[Misaligned]]:
        """Compare one object with its projections on every mapped resource"""
        missing: Set[Missing] = set()
        misaligned: Set[Misaligned] = set()

        for resource in self.store.any_utils.get_all_resources(any_obj):
            resolved = self.resolver.resolve(any_obj, resource)
            if resolved is None:
                self.stats.resources_skipped += 1
                continue

            key_value = resolved.conn_object_key_value
            if not key_value:
                self.logger.error(f"Object {any_obj.key} has no connector object key value for resource {resource.key}")
                missing.add(Missing(resource.key, key_value))
                continue

            connector_object = self.gateway.read(
                resource,
                resolved.object_class,
                key_value,
                MappingUtils.build_operation_options(resolved.mapping_items)
            )

            if connector_object is None:
                self.logger.error(
                    f"Object {key_value} with class {resolved.object_class} not found on resource {resource.key}"
                )
                missing.add(Missing(resource.key, key_value))
            else:
                source = DiffEngine.to_value_sets(MappingUtils.prepare_attrs(any_obj, resolved.provision))
                remote = DiffEngine.filter_remote(connector_object.attributes, exclude=(resolved.key_attr_name,))
                found = DiffEngine.compare(resource.key, key_value, source, remote)
                if found:
                    self.logger.debug(f"{any_obj.key} misaligned on {resource.key}: {sorted(m.name for m in found)}")
                misaligned |= found

        return missing, misaligned

    def log_statistics(self) -> None:
        stats = self.stats
        self.logger.info(
            f"Reconciliation summary: {stats.objects_inspected} inspected, {stats.objects_reported} reported"
        )
        self.logger.info(
            f"Findings: {stats.missing} missing, {stats.misaligned} misaligned, "
            f"{stats.connector_failures} connector failures, {stats.resources_skipped} resources skipped"
        )
