########################################################################
# File name: framing.py
# This file is part of: aiocomponent
#
# LICENSE
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Lesser General Public License as
# published by the Free Software Foundation, either version 3 of the
# License, or (at your option) any later version.
#
# This program is distributed in the hope that it will be useful, but
# WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public
# License along with this program.  If not, see
# <http://www.gnu.org/licenses/>.
#
########################################################################
"""
:mod:`~aiocomponent.framing` --- Turning bytes into stream-level elements
#########################################################################

The inbound half of a component stream is a pipeline of two stages:

1. :class:`XMLFrameDecoder` push-parses chunks of bytes into XML events. It
   never needs the document to end: the stream root stays open for the whole
   lifetime of the connection.
2. :class:`XMLElementDecoder` passes the events of the outer `skip` levels
   through and assembles everything below into complete
   :class:`~.element.XMLElement` objects.

:class:`XMLStreamDecoder` chains both stages.

Events
======

.. autoclass:: StartDocument

.. autoclass:: StartElement

.. autoclass:: EndElement

.. autoclass:: Characters

.. autoclass:: EndDocument

Stages
======

.. autoclass:: XMLFrameDecoder

.. autoclass:: XMLElementDecoder

.. autoclass:: XMLStreamDecoder

"""
import collections

import xml.sax as sax
import xml.parsers.expat as pyexpat

import lxml.sax

from . import element, errors, xml


StartDocument = collections.namedtuple("StartDocument", [])

#: `name` is a ``(namespace, localname)`` tuple, `attributes` maps such tuples
#: to values and `nsmap` holds the prefixes declared on the element.
StartElement = collections.namedtuple(
    "StartElement",
    ["name", "attributes", "nsmap"]
)

EndElement = collections.namedtuple("EndElement", ["name"])

Characters = collections.namedtuple("Characters", ["data"])

EndDocument = collections.namedtuple("EndDocument", [])


class XMLFrameDecoder(sax.handler.ContentHandler):
    """
    Incremental byte to event decoder.

    Each call to :meth:`feed` returns the events which became complete with
    the new data. Partial input is kept by the underlying expat parser.

    The parser is configured by :func:`~.xml.make_parser`: external entities
    are not resolved and restricted XML (comments, DTDs, processing
    instructions and non-predefined entities) raises a
    :class:`~.errors.StreamError` with the ``restricted-xml`` condition.
    Malformed input raises ``not-well-formed``.

    After an exception the decoder is unusable.

    .. automethod:: feed

    .. automethod:: close
    """

    def __init__(self):
        super().__init__()
        self._events = []
        self._pending_nsmap = {}
        self._parser = xml.make_parser()
        self._parser.setContentHandler(self)

    def _call_parser(self, func, *args):
        try:
            func(*args)
        except sax.SAXParseException as exc:
            cause = exc.getException()
            if (cause is not None and cause.args and
                    str(cause.args[0]).startswith(
                        pyexpat.errors.XML_ERROR_UNDEFINED_ENTITY)):
                raise errors.StreamError(
                    errors.StreamErrorCondition.RESTRICTED_XML,
                    "non-predefined entities are not allowed in XMPP"
                ) from exc
            raise errors.StreamError(
                errors.StreamErrorCondition.NOT_WELL_FORMED,
                str(exc)
            ) from exc

        events = self._events
        self._events = []
        return events

    def feed(self, data):
        """
        Feed the bytes `data` to the parser and return the list of complete
        events.
        """
        return self._call_parser(self._feed, data)

    def _feed(self, data):
        self._parser.feed(data)
        # expat >= 2.6 defers reparsing of incomplete tokens until enough
        # data has arrived; a stanza must not wait for the next one
        flush = getattr(self._parser, "flush", None)
        if flush is not None:
            flush()

    def close(self):
        """
        Signal the end of input. Returns the remaining events, which end with
        :class:`EndDocument`. If the root element is still open, a
        ``not-well-formed`` :class:`~.errors.StreamError` is raised.
        """
        return self._call_parser(self._parser.close)

    def startDocument(self):
        self._events.append(StartDocument())

    def startPrefixMapping(self, prefix, uri):
        self._pending_nsmap[prefix] = uri

    def endPrefixMapping(self, prefix):
        pass

    def startElementNS(self, name, qname, attributes):
        self._events.append(StartElement(
            name,
            dict(attributes.items()),
            self._pending_nsmap,
        ))
        self._pending_nsmap = {}

    def endElementNS(self, name, qname):
        self._events.append(EndElement(name))

    def characters(self, data):
        self._events.append(Characters(data))

    def processingInstruction(self, target, data):
        raise errors.StreamError(
            errors.StreamErrorCondition.RESTRICTED_XML,
            "processing instructions are not allowed in XMPP"
        )

    def endDocument(self):
        self._events.append(EndDocument())


class XMLElementDecoder:
    """
    Event to element assembler.

    :param skip: Number of outer element levels which are passed through.
    :type skip: :class:`int`

    :meth:`feed` takes one event and returns a (possibly empty) list of
    outputs. Start and end events of the outer `skip` levels are returned
    unchanged. All events below are collected with a
    :class:`lxml.sax.ElementTreeContentHandler`; when such an element closes,
    it is returned as :class:`~.element.XMLElement` and a fresh tree is
    started for the next one.

    Document start and end events are dropped, and so is character data
    between the assembled elements (whitespace keepalives).
    """

    def __init__(self, skip=1):
        super().__init__()
        self.skip = skip
        self._depth = 0
        self._handler = None

    @property
    def depth(self):
        """
        Current nesting depth, counting the skipped levels.
        """
        return self._depth

    def feed(self, event):
        if isinstance(event, StartElement):
            return self._start(event)
        elif isinstance(event, EndElement):
            return self._end(event)
        elif isinstance(event, Characters):
            if self._depth > self.skip:
                self._handler.characters(event.data)
            return []
        elif isinstance(event, (StartDocument, EndDocument)):
            return []
        raise TypeError("not an XML event: {!r}".format(event))

    def feed_all(self, events):
        result = []
        for event in events:
            result.extend(self.feed(event))
        return result

    def _start(self, event):
        if self._depth < self.skip:
            self._depth += 1
            return [event]

        if self._handler is None:
            self._handler = lxml.sax.ElementTreeContentHandler()
        self._handler.startElementNS(event.name, None, event.attributes)
        self._depth += 1
        return []

    def _end(self, event):
        if self._depth <= self.skip:
            self._depth -= 1
            return [event]

        self._handler.endElementNS(event.name, None)
        self._depth -= 1
        if self._depth > self.skip:
            return []

        root = self._handler.etree.getroot()
        self._handler = None
        return [element.XMLElement(root)]


class XMLStreamDecoder:
    """
    The complete inbound pipeline: bytes in, stream bracket events and
    assembled elements out, in arrival order.

    .. automethod:: feed
    """

    def __init__(self, skip=1):
        super().__init__()
        self._frames = XMLFrameDecoder()
        self._elements = XMLElementDecoder(skip=skip)

    @property
    def depth(self):
        return self._elements.depth

    def feed(self, data):
        return self._elements.feed_all(self._frames.feed(data))

    def close(self):
        return self._elements.feed_all(self._frames.close())
