########################################################################
# File name: element.py
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
:mod:`~aiocomponent.element` --- Mutable XML trees
##################################################

This module provides a small, namespace-aware element model on top of
:mod:`lxml.etree`. Stanzas (see :mod:`aiocomponent.stanza`) are thin wrappers
around :class:`XMLElement` instances.

Names and namespaces can be matched with the :data:`WILDCARD` (``"*"``). The
null namespace is represented by :data:`None`.

.. autodata:: WILDCARD

.. autoclass:: XMLElement

.. autoclass:: XMLBuilder

.. autofunction:: fromstring

.. autofunction:: tostring

"""
import copy

from . import xml
from .utils import etree


#: Matches any name or namespace in the lookup methods of :class:`XMLElement`.
WILDCARD = "*"


def _make_tag(name, namespace):
    if namespace:
        return "{{{}}}{}".format(namespace, name)
    return name


def _matches(node, name, namespace):
    if not isinstance(node.tag, str):
        return False
    qname = etree.QName(node)
    if name != WILDCARD and qname.localname != name:
        return False
    if namespace != WILDCARD and qname.namespace != (namespace or None):
        return False
    return True


class XMLElement:
    """
    A single element of a mutable XML tree.

    :param name: Local name of the new element, or an existing
        :class:`lxml.etree._Element` to wrap.
    :param namespace: Namespace of the new element; :data:`None` for the null
        namespace. Must be omitted when wrapping a node.

    An element always belongs to exactly one tree. Wrapping does not copy:
    two :class:`XMLElement` objects wrapping the same node compare equal and
    see each others modifications.

    Tree navigation:

    .. autoattribute:: parent

    .. autoattribute:: root

    .. autoattribute:: xml

    Attributes:

    .. automethod:: get_attribute

    .. automethod:: set_attribute

    .. automethod:: has_attribute

    .. autoattribute:: attributes

    Children:

    .. automethod:: add_child

    .. automethod:: get_first_child

    .. automethod:: get_children

    .. automethod:: remove_child

    .. automethod:: get_child_text

    .. automethod:: set_child_text
    """

    __slots__ = ("_node",)

    def __init__(self, name, namespace=None):
        if isinstance(name, etree._Element):
            if namespace is not None:
                raise TypeError("namespace must not be given when wrapping")
            self._node = name
        else:
            nsmap = {None: namespace} if namespace else None
            self._node = etree.Element(_make_tag(name, namespace),
                                       nsmap=nsmap)

    @property
    def xml(self):
        """
        The wrapped :class:`lxml.etree._Element`.
        """
        return self._node

    @property
    def name(self):
        return etree.QName(self._node).localname

    @property
    def namespace(self):
        return etree.QName(self._node).namespace

    @property
    def tag(self):
        """
        The name of the element in Clark notation (``{namespace}name``).
        """
        return self._node.tag

    @property
    def parent(self):
        """
        The parent element or :data:`None` for the root of the tree.
        """
        parent = self._node.getparent()
        if parent is None:
            return None
        return XMLElement(parent)

    @property
    def root(self):
        """
        The root element of the tree this element belongs to. This is the
        element itself if it has no parent.
        """
        return XMLElement(self._node.getroottree().getroot())

    @property
    def text(self):
        """
        The text content of the element, including the text of all
        descendants, in document order.

        Writing to this attribute replaces the *whole* content of the element,
        children included.
        """
        return "".join(self._node.itertext())

    @text.setter
    def text(self, value):
        for child in list(self._node):
            self._node.remove(child)
        self._node.text = value

    def has_attribute(self, name):
        return name in self._node.attrib

    def get_attribute(self, name, default=None):
        """
        Return the value of the attribute `name` or `default` if it is not
        set. Namespaced attributes are named in Clark notation.
        """
        return self._node.get(name, default)

    def set_attribute(self, name, value):
        """
        Set the attribute `name` to `value`, replacing any previous value.
        Setting an attribute to :data:`None` removes it.
        """
        if value is None:
            self._node.attrib.pop(name, None)
        else:
            self._node.set(name, str(value))

    def remove_attribute(self, name):
        self.set_attribute(name, None)

    @property
    def attributes(self):
        """
        A copy of the attributes as :class:`dict`, in document order.
        """
        return dict(self._node.attrib)

    def add_child(self, child, namespace=None):
        """
        Append a child and return it.

        :param child: Either the local name of a new child or an
            :class:`XMLElement` to copy.
        :param namespace: Namespace of a new child; must be omitted if `child`
            is an element.
        :return: The new child element.
        :rtype: :class:`XMLElement`

        If `child` is an :class:`XMLElement`, a deep copy of it is appended;
        later changes to `child` do not affect this tree and vice versa.
        """
        if isinstance(child, XMLElement):
            if namespace is not None:
                raise TypeError("namespace must not be given for elements")
            node = copy.deepcopy(child._node)
            node.tail = None
            self._node.append(node)
            return XMLElement(node)

        nsmap = None
        if namespace and self._node.nsmap.get(None) != namespace:
            nsmap = {None: namespace}
        node = etree.SubElement(self._node,
                                _make_tag(child, namespace),
                                nsmap=nsmap)
        return XMLElement(node)

    def _iter_children(self, name, namespace):
        for node in self._node:
            if _matches(node, name, namespace):
                yield XMLElement(node)

    def get_first_child(self, name=WILDCARD, namespace=WILDCARD):
        """
        Return the first child matching `name` and `namespace`, or
        :data:`None`. Both default to the :data:`WILDCARD`.
        """
        return next(self._iter_children(name, namespace), None)

    def get_children(self, name=WILDCARD, namespace=WILDCARD):
        """
        Return a list of all children matching `name` and `namespace`.
        """
        return list(self._iter_children(name, namespace))

    def has_child(self, name=WILDCARD, namespace=WILDCARD):
        return self.get_first_child(name, namespace) is not None

    def remove_child(self, child):
        """
        Remove the direct child `child`.

        :raises ValueError: if `child` is not a child of this element.
        """
        self._node.remove(child._node)

    def get_child_text(self, name, namespace=WILDCARD, default=None):
        """
        Return the text of the first child matching `name` and `namespace`,
        or `default` if there is no such child.
        """
        child = self.get_first_child(name, namespace)
        if child is None:
            return default
        return child.text

    def set_child_text(self, name, text, namespace=WILDCARD):
        """
        Set the text of the first child matching `name` and `namespace`.

        If no such child exists, it is created; in the null namespace if
        `namespace` is the :data:`WILDCARD` and in `namespace` otherwise. If
        `text` is :data:`None`, the child is removed instead (if it exists).

        Return the child or :data:`None` if it was removed.
        """
        child = self.get_first_child(name, namespace)
        if text is None:
            if child is not None:
                self.remove_child(child)
            return None

        if child is None:
            child = self.add_child(
                name,
                None if namespace == WILDCARD else namespace,
            )
        child.text = text
        return child

    def __eq__(self, other):
        if not isinstance(other, XMLElement):
            return NotImplemented
        return self._node is other._node

    def __hash__(self):
        return hash(self._node)

    def __str__(self):
        return xml.serialize_element(self._node)

    def __repr__(self):
        return "<XMLElement {}>".format(self._node.tag)


class XMLBuilder:
    """
    Fluent interface to build :class:`XMLElement` trees.

    .. code-block:: python

        xml = (XMLBuilder.create("iq", namespaces.component_accept)
               .attribute("type", "get")
               .child("query", namespaces.xep0030_info)
               .get_xml())

    Every method returns a builder. :meth:`child` descends into the new
    child, :meth:`parent` ascends; :meth:`get_xml` returns the root of the
    tree independent of the current position.

    .. automethod:: create

    .. autoattribute:: element
    """

    def __init__(self, element):
        self._element = element

    @classmethod
    def create(cls, name, namespace=None):
        """
        Start a new tree with a root named `name` in `namespace`.
        """
        return cls(XMLElement(name, namespace))

    @property
    def element(self):
        """
        The element the builder is currently positioned at.
        """
        return self._element

    def attribute(self, name, value):
        self._element.set_attribute(name, value)
        return self

    def text(self, value):
        self._element.text = value
        return self

    def child(self, name, namespace=None):
        return type(self)(self._element.add_child(name, namespace))

    def child_element(self, element):
        self._element.add_child(element)
        return self

    def child_text(self, name, text, namespace=None):
        self._element.add_child(name, namespace).text = text
        return self

    def parent(self):
        parent = self._element.parent
        if parent is None:
            raise ValueError("builder is positioned at the root")
        return type(self)(parent)

    def get_xml(self):
        return self._element.root


def fromstring(data):
    """
    Parse a standalone XML fragment from :class:`str` or :class:`bytes` and
    return its root as :class:`XMLElement`. Entities are not resolved and no
    network access happens.
    """
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    if isinstance(data, str):
        data = data.encode("utf-8")
    return XMLElement(etree.fromstring(data, parser))


def tostring(element):
    """
    Serialise `element` (and its subtree) to :class:`str`.
    """
    return xml.serialize_element(element.xml)
