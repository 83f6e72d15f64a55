# =============================================================================
# utils/xml_utils.py - XML content sinks and report parsing
# =============================================================================

from typing import Any, BinaryIO, Dict, Iterator, List, Optional
from xml.sax.handler import ContentHandler

from lxml import etree

OBJECT_ELEMENTS = {'user': 'users', 'group': 'groups', 'anyObject': 'anyObjects'}

SUMMARY_FIELDNAMES = [
    'kind', 'any_type', 'object_key', 'finding', 'resource', 'conn_object_key_value',
    'attribute', 'on_syncope', 'on_resource'
]


class XMLFileContentSink(ContentHandler):
    """SAX content handler writing incrementally to a binary stream with lxml"""

    def __init__(self, stream: BinaryIO, encoding: str = 'utf-8'):
        super().__init__()
        self.stream = stream
        self.encoding = encoding
        self._context = None
        self._writer = None
        self._open_elements: List[Any] = []

    def startDocument(self):
        self._context = etree.xmlfile(self.stream, encoding=self.encoding)
        self._writer = self._context.__enter__()
        self._writer.write_declaration()

    def endDocument(self):
        if self._open_elements:
            raise ValueError(f"{len(self._open_elements)} element(s) still open at end of document")
        self._context.__exit__(None, None, None)
        self._context = self._writer = None
        self.stream.flush()

    def startElement(self, name, attrs):
        if self._writer is None:
            raise ValueError("startDocument must be called before writing elements")
        attrib = {key: str(value) for key, value in (attrs.items() if attrs else [])}
        element = self._writer.element(name, attrib)
        element.__enter__()
        self._open_elements.append((name, element))

    def endElement(self, name):
        open_name, element = self._open_elements.pop()
        if open_name != name:
            raise ValueError(f"Mismatched end tag {name}, expected {open_name}")
        element.__exit__(None, None, None)
        if name in OBJECT_ELEMENTS:
            self._writer.flush()

    def characters(self, content):
        self._writer.write(content)


def _values(element: Optional[etree._Element]) -> List[str]:
    if element is None:
        return []
    return [value.text or '' for value in element.findall('value')]


def _release(element: etree._Element) -> None:
    """Drop a processed element and its already processed preceding siblings"""
    element.clear()
    parent = element.getparent()
    if parent is not None:
        while element.getprevious() is not None:
            del parent[0]


def parse_findings(source) -> Iterator[Dict[str, str]]:
    """Yield one flat row per missing or misaligned finding of a report

    ``source`` is a file name or a binary file object. Objects are released
    after they are read, so large reports can be summarised in constant memory.
    """
    any_type = ''
    for event, element in etree.iterparse(source, events=('start', 'end')):
        tag = element.tag

        if event == 'start':
            if tag == 'anyObjects':
                any_type = element.get('type', '')
            elif tag in ('users', 'groups'):
                any_type = tag[:-1].upper()
            continue

        if tag not in OBJECT_ELEMENTS:
            continue

        for finding in element:
            if finding.tag not in ('missing', 'misaligned'):
                continue
            yield {
                'kind': tag,
                'any_type': any_type,
                'object_key': element.get('key', ''),
                'finding': finding.tag,
                'resource': finding.get('resource', ''),
                'conn_object_key_value': finding.get('connObjectKeyValue', ''),
                'attribute': finding.get('name', ''),
                'on_syncope': '|'.join(_values(finding.find('onSyncope'))),
                'on_resource': '|'.join(_values(finding.find('onResource'))),
            }
        _release(element)
