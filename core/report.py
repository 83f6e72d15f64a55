# =============================================================================
# core/report.py - Report document runner
# =============================================================================

import logging
from typing import List, Tuple
from xml.sax.handler import ContentHandler

from core.emitter import TypedAttributes, XSD_STRING
from core.models import ReconciliationReportletConf, ReconciliationStats
from core.reportlet import GuardedContentHandler, ReconciliationReportlet


class ReportRunner:
    """Writes one report document made of reconciliation reportlets"""

    def __init__(self, name: str, reportlets: List[Tuple[ReconciliationReportlet, ReconciliationReportletConf]]):
        self.name = name
        self.reportlets = reportlets
        self.logger = logging.getLogger(self.__class__.__name__)

    def run(self, handler: ContentHandler) -> List[ReconciliationStats]:
        handler = GuardedContentHandler(handler)
        handler.startDocument()

        atts = TypedAttributes()
        atts.add("name", XSD_STRING, self.name)
        handler.startElement("report", atts)

        results = []
        for reportlet, conf in self.reportlets:
            results.append(reportlet.extract(conf, handler))

        handler.endElement("report")
        handler.endDocument()

        self.logger.info(f"Report '{self.name}' completed with {len(results)} reportlet(s)")
        return results
