########################################################################
# File name: xml.py
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
:mod:`~aiocomponent.xml` --- XML utilities for component streams
################################################################

Writing
=======

Outbound XML is produced from :mod:`lxml` trees by a small serializer which
knows about the namespace context of a component stream: elements in the
default namespace of the stream are written without a declaration, elements
in namespaces bound to a prefix at the stream header (``stream:``) use that
prefix, and everything else is declared where it first occurs. Elements in
the null namespace below a default namespace undeclare it (``xmlns=""``).

.. autoclass:: XMLStreamWriter

.. autofunction:: serialize_element

.. autofunction:: write_element

Reading
=======

.. autoclass:: XMPPLexicalHandler

.. autofunction:: make_parser

"""


import xml.sax
import xml.sax.saxutils

from . import errors
from .utils import etree, namespaces


def _to_node(obj):
    # stanza -> XMLElement -> lxml node
    while not isinstance(obj, etree._Element):
        obj = obj.xml
    return obj


def _split_tag(tag):
    qname = etree.QName(tag)
    return qname.namespace, qname.localname


def _free_prefix(prefixes):
    used = set(prefixes.values())
    i = 0
    while "ns{}".format(i) in used:
        i += 1
    return "ns{}".format(i)


def _format_attributes(items):
    return "".join(
        " {}={}".format(name, xml.sax.saxutils.quoteattr(value))
        for name, value in items
    )


def _serialize(node, default_ns, prefixes, parts, sorted_attributes):
    namespace, localname = _split_tag(node)

    decls = []
    if namespace is None:
        if default_ns:
            decls.append(("xmlns", ""))
            default_ns = None
        qname = localname
    elif namespace == default_ns:
        qname = localname
    elif namespace in prefixes:
        qname = "{}:{}".format(prefixes[namespace], localname)
    else:
        decls.append(("xmlns", namespace))
        default_ns = namespace
        qname = localname

    attrs = []
    for key, value in node.attrib.items():
        attr_ns, attr_name = _split_tag(key)
        if attr_ns is None:
            attrs.append((attr_name, value))
            continue
        if attr_ns == namespaces.xml:
            attrs.append(("xml:" + attr_name, value))
            continue
        prefix = prefixes.get(attr_ns)
        if prefix is None:
            prefix = _free_prefix(prefixes)
            prefixes = dict(prefixes)
            prefixes[attr_ns] = prefix
            decls.append(("xmlns:" + prefix, attr_ns))
        attrs.append(("{}:{}".format(prefix, attr_name), value))

    decls.sort()
    if sorted_attributes:
        attrs.sort()

    parts.append("<" + qname + _format_attributes(decls + attrs))

    content = []
    if node.text:
        content.append(xml.sax.saxutils.escape(node.text))
    for child in node:
        # comments and processing instructions are dropped, their tails kept
        if isinstance(child.tag, str):
            _serialize(child, default_ns, prefixes, content,
                       sorted_attributes)
        if child.tail:
            content.append(xml.sax.saxutils.escape(child.tail))

    if content:
        parts.append(">")
        parts.extend(content)
        parts.append("</{}>".format(qname))
    else:
        parts.append("/>")


def serialize_element(x):
    """
    Serialize a single element `x` to a string. `x` may be an
    :class:`lxml.etree._Element`, an :class:`~.element.XMLElement` or a
    stanza. The namespace of `x` is declared on it and attributes are
    sorted, so the output is deterministic.
    """
    parts = []
    _serialize(_to_node(x), None, {}, parts, True)
    return "".join(parts)


def write_element(x, dest):
    """
    Write :func:`serialize_element` of `x`, UTF-8 encoded, to the binary
    file-like object `dest`.
    """
    dest.write(serialize_element(x).encode("utf-8"))


class XMLStreamWriter:
    """
    Write a component XML stream to `f`.

    :param f: Binary file-like object (or transport) to write to. If it has a
        ``flush`` method, it is called after each write.
    :param to: Address to which the connection is addressed.
    :type to: :class:`~aiocomponent.structs.JID` or :class:`str`
    :param nsmap: Mapping of prefixes to namespaces to declare at the stream
        header; the :data:`None` key sets the default namespace. The
        ``stream`` prefix is always declared.
    :param sorted_attributes: Sort attributes in the output (for testing).

    Nothing is written before :meth:`start`. The stream header carries the
    ``to`` attribute and the namespace declarations only; the component
    protocol uses neither an XML declaration nor a ``version`` attribute.

    .. autoattribute:: closed

    .. automethod:: start

    .. automethod:: send

    .. automethod:: abort

    .. automethod:: close
    """

    def __init__(self, f, to,
                 nsmap={},
                 sorted_attributes=False):
        super().__init__()
        self._write = f.write
        self._flush = getattr(f, "flush", None)
        self._to = to
        self._sorted_attributes = sorted_attributes
        self._default_ns = nsmap.get(None)
        self._prefixes = {namespaces.xmlstream: "stream"}
        self._prefixes.update(
            (uri, prefix)
            for prefix, uri in nsmap.items()
            if prefix is not None
        )
        self._closed = False

    def _emit(self, text):
        self._write(text.encode("utf-8"))
        if self._flush is not None:
            self._flush()

    @property
    def closed(self):
        """
        True if the stream has been closed by :meth:`abort` or :meth:`close`.
        Read-only.
        """
        return self._closed

    def start(self):
        """
        Send the stream header.
        """
        decls = [
            ("xmlns:" + prefix, uri)
            for uri, prefix in self._prefixes.items()
        ]
        decls.sort()
        if self._default_ns:
            decls.insert(0, ("xmlns", self._default_ns))
        self._emit("<stream:stream{}>".format(
            _format_attributes(decls + [("to", str(self._to))])
        ))

    def send(self, obj):
        """
        Send a single element.

        :param obj: Element to serialise and send; an lxml element, an
            :class:`~.element.XMLElement` or a stanza.
        :raises RuntimeError: if the stream is :attr:`closed`.

        The element is serialised completely before anything is written, so
        a failing serialisation leaves the stream untouched.
        """
        if self._closed:
            raise RuntimeError("stream writer is closed")
        parts = []
        _serialize(_to_node(obj), self._default_ns, self._prefixes, parts,
                   self._sorted_attributes)
        self._emit("".join(parts))

    def abort(self):
        """
        Mark the stream as :attr:`closed` without sending the footer. Does
        nothing if the stream is closed already.
        """
        self._closed = True

    def close(self):
        """
        Send the stream footer and mark the stream as :attr:`closed`. Does
        nothing if the stream is closed already.
        """
        if self._closed:
            return
        self._closed = True
        self._emit("</stream:stream>")


class XMPPLexicalHandler:
    """
    A `lexical handler
    <http://www.saxproject.org/apidoc/org/xml/sax/ext/LexicalHandler.html>`_
    which rejects comments, DTD declarations and non-predefined entities,
    none of which may occur in an XMPP stream. Violations raise a
    :class:`~.errors.StreamError` with the ``restricted-xml`` condition.

    All methods are class methods, so the class itself is installed as
    handler.
    """

    PREDEFINED_ENTITIES = {"amp", "lt", "gt", "apos", "quot"}

    @staticmethod
    def _restricted(what):
        return errors.StreamError(
            errors.StreamErrorCondition.RESTRICTED_XML,
            "{} are not allowed in XMPP".format(what)
        )

    @classmethod
    def comment(cls, data):
        raise cls._restricted("comments")

    @classmethod
    def startDTD(cls, name, publicId, systemId):
        raise cls._restricted("DTD declarations")

    @classmethod
    def endDTD(cls):
        pass

    @classmethod
    def startCDATA(cls):
        pass

    @classmethod
    def endCDATA(cls):
        pass

    @classmethod
    def startEntity(cls, name):
        if name not in cls.PREDEFINED_ENTITIES:
            raise cls._restricted("non-predefined entities")

    @classmethod
    def endEntity(cls, name):
        pass


def make_parser():
    """
    Create an incremental, namespace-aware SAX parser for a component stream.
    It has :class:`XMPPLexicalHandler` installed and does not resolve
    external entities.
    """
    p = xml.sax.make_parser()
    p.setFeature(xml.sax.handler.feature_namespaces, True)
    p.setFeature(xml.sax.handler.feature_external_ges, False)
    p.setProperty(xml.sax.handler.property_lexical_handler,
                  XMPPLexicalHandler)
    return p
