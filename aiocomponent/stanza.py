########################################################################
# File name: stanza.py
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
:mod:`~aiocomponent.stanza` --- Typed views on stanzas

This module provides thin wrappers around :class:`~.element.XMLElement`
which give typed access to the three stanza kinds of the component
protocol.

Much of what you'll read here makes much more sense if you have read
`RFC 6120 <https://tools.ietf.org/html/rfc6120#section-4.7.1>`_.

The wrappers do not copy: reading and writing attributes goes straight to the
wrapped element, which is available as :attr:`StanzaBase.xml`. New stanzas
are created in the ``jabber:component:accept`` namespace.

Top-level classes
=================

.. autoclass:: StanzaBase

.. autoclass:: Message

.. autoclass:: Presence

.. autoclass:: IQ

.. autofunction:: from_element

Payload classes
===============

.. autoclass:: Error

"""
import random

from . import element, errors, structs
from .utils import namespaces, to_nmtoken


#: The number of bytes of randomness used by :meth:`StanzaBase.autoset_id`.
RANDOM_ID_BYTES = 120 // 8


def _safe_format_attr(obj, attr_name):
    try:
        value = getattr(obj, attr_name)
    except (AttributeError, ValueError):
        return "<invalid>"
    if value is None:
        return "<unset>"
    return str(value)


class Error:
    """
    An XMPP stanza error payload.

    :param condition: The error condition.
    :type condition: :class:`~.errors.ErrorCondition`
    :param type_: The type of the error.
    :type type_: :class:`~.structs.ErrorType`
    :param text: Optional human-readable description.

    .. automethod:: from_element

    .. automethod:: from_exception

    .. automethod:: to_exception

    .. automethod:: to_element
    """

    def __init__(self,
                 condition=errors.ErrorCondition.UNDEFINED_CONDITION,
                 type_=structs.ErrorType.CANCEL,
                 text=None):
        self.condition = errors.ErrorCondition(condition)
        self.type_ = structs.ErrorType(type_)
        self.text = text

    @classmethod
    def from_element(cls, el):
        """
        Parse an ``<error/>`` element. Unknown types read as ``cancel``,
        unknown or missing conditions as ``undefined-condition``.
        """
        try:
            type_ = structs.ErrorType(el.get_attribute("type"))
        except ValueError:
            type_ = structs.ErrorType.CANCEL

        condition = errors.ErrorCondition.UNDEFINED_CONDITION
        for child in el.get_children(namespace=namespaces.stanzas):
            if child.name == "text":
                continue
            try:
                condition = errors.ErrorCondition((child.namespace,
                                                   child.name))
            except ValueError:
                continue
            break

        text = el.get_child_text("text", namespace=namespaces.stanzas)
        return cls(condition=condition, type_=type_, text=text)

    @classmethod
    def from_exception(cls, exc):
        """
        Create an :class:`Error` from an :class:`~.errors.XMPPError`.
        """
        return cls(
            condition=exc.condition,
            type_=exc.TYPE,
            text=exc.text,
        )

    def to_exception(self, stanza=None):
        """
        Return the :class:`~.errors.XMPPError` subclass instance matching
        :attr:`type_`.
        """
        exc_cls = errors.EXCEPTION_CLS_MAP[self.type_]
        return exc_cls(self.condition, text=self.text, stanza=stanza)

    def to_element(self, namespace=namespaces.component_accept):
        el = element.XMLElement("error", namespace)
        el.set_attribute("type", self.type_.value)
        cond_ns, cond_name = self.condition.value
        el.add_child(cond_name, cond_ns)
        if self.text:
            el.add_child("text", namespaces.stanzas).text = self.text
        return el

    def __repr__(self):
        payload = ""
        if self.text:
            payload = " text={!r}".format(self.text)

        return "<{} type={!r}{}>".format(
            self.condition.value[1],
            self.type_,
            payload)


class StanzaBase:
    """
    Base class for stanza wrappers.

    :param from_: Sender address.
    :param to: Recipient address.
    :param id_: Stanza id.

    .. attribute:: TAG

       The local name of the stanza element.

    .. autoattribute:: xml

    .. autoattribute:: from_

    .. autoattribute:: to

    .. autoattribute:: id_

    .. automethod:: wrap

    .. automethod:: autoset_id

    .. automethod:: get_extension

    .. automethod:: add_extension

    .. automethod:: make_error_reply
    """

    TAG = None
    TYPE_ENUM = None
    DEFAULT_TYPE = None

    def __init__(self, *, from_=None, to=None, id_=None):
        super().__init__()
        self._xml = element.XMLElement(self.TAG, namespaces.component_accept)
        self.from_ = from_
        self.to = to
        self.id_ = id_

    @classmethod
    def wrap(cls, el):
        """
        Create a stanza object viewing the existing element `el`. No copy is
        made.
        """
        if el.name != cls.TAG:
            raise ValueError("cannot wrap <{}/> as {}".format(
                el.name, cls.__name__))
        obj = cls.__new__(cls)
        obj._xml = el
        return obj

    @property
    def xml(self):
        """
        The wrapped :class:`~.element.XMLElement`.
        """
        return self._xml

    def _get_jid(self, name):
        return structs.jid(self._xml.get_attribute(name))

    def _set_jid(self, name, value):
        self._xml.set_attribute(name, None if value is None else str(value))

    @property
    def from_(self):
        """
        The sender as :class:`~.structs.JID`. Invalid addresses read as
        :data:`None`.
        """
        return self._get_jid("from")

    @from_.setter
    def from_(self, value):
        self._set_jid("from", value)

    @property
    def to(self):
        return self._get_jid("to")

    @to.setter
    def to(self, value):
        self._set_jid("to", value)

    @property
    def id_(self):
        return self._xml.get_attribute("id")

    @id_.setter
    def id_(self, value):
        self._xml.set_attribute("id", value)

    @property
    def type_(self):
        value = self._xml.get_attribute("type")
        if value is None:
            return self.DEFAULT_TYPE
        try:
            return self.TYPE_ENUM(value)
        except ValueError:
            return self.DEFAULT_TYPE

    @type_.setter
    def type_(self, value):
        if value is not None:
            value = self.TYPE_ENUM(value).value
        self._xml.set_attribute("type", value)

    def autoset_id(self):
        """
        Give the stanza a random id unless it has a non-empty one already.

        The id encodes :data:`RANDOM_ID_BYTES` random bytes with
        :func:`aiocomponent.utils.to_nmtoken`.
        """
        if self.id_:
            return

        self.id_ = to_nmtoken(random.getrandbits(8*RANDOM_ID_BYTES))

    def get_extension(self, name, namespace):
        """
        Return the first child element `name` in `namespace` or
        :data:`None`.
        """
        return self._xml.get_first_child(name, namespace)

    def add_extension(self, name, namespace):
        """
        Append a new child element `name` in `namespace` and return it.
        """
        return self._xml.add_child(name, namespace)

    @property
    def error(self):
        """
        The :class:`~.errors.XMPPError` carried by an error stanza, or
        :data:`None`.
        """
        el = self._xml.get_first_child("error", self._xml.namespace)
        if el is None:
            return None
        return Error.from_element(el).to_exception(stanza=self)

    def _make_reply(self, type_):
        obj = type(self)(type_)
        obj.from_ = self.to
        obj.to = self.from_
        obj.id_ = self.id_
        return obj

    def make_error_reply(self, error):
        """
        Create a new stanza of the same kind with type ``error``, carrying
        `error` (an :class:`Error` or an :class:`~.errors.XMPPError`).

        The :attr:`id_` is kept, :attr:`from_` and :attr:`to` are swapped.
        """
        if isinstance(error, errors.XMPPError):
            error = Error.from_exception(error)
        obj = self._make_reply(self.TYPE_ENUM.ERROR)
        obj.xml.add_child(error.to_element(obj.xml.namespace))
        return obj

    def _child_text(self, name):
        return self._xml.get_child_text(name, self._xml.namespace)

    def _set_child_text(self, name, value):
        self._xml.set_child_text(name, value, self._xml.namespace)

    def __str__(self):
        return str(self._xml)

    def __repr__(self):
        return "<{} from={} to={} id={} type={}>".format(
            self.TAG,
            _safe_format_attr(self, "from_"),
            _safe_format_attr(self, "to"),
            _safe_format_attr(self, "id_"),
            _safe_format_attr(self, "type_"),
        )


class Message(StanzaBase):
    """
    An XMPP message stanza.

    .. autoattribute:: type_

    .. autoattribute:: body

    .. autoattribute:: subject

    .. autoattribute:: thread

    .. automethod:: make_reply
    """

    TAG = "message"
    TYPE_ENUM = structs.MessageType
    DEFAULT_TYPE = structs.MessageType.NORMAL

    def __init__(self, type_=structs.MessageType.NORMAL, **kwargs):
        super().__init__(**kwargs)
        self.type_ = type_

    @property
    def body(self):
        return self._child_text("body")

    @body.setter
    def body(self, value):
        self._set_child_text("body", value)

    @property
    def subject(self):
        return self._child_text("subject")

    @subject.setter
    def subject(self, value):
        self._set_child_text("subject", value)

    @property
    def thread(self):
        return self._child_text("thread")

    @thread.setter
    def thread(self, value):
        self._set_child_text("thread", value)

    def make_reply(self):
        """
        Return a message addressed back to the sender, of the same
        :attr:`type_` and in the same :attr:`thread`, without an id.
        """
        obj = super()._make_reply(self.type_)
        obj.id_ = None
        obj.thread = self.thread
        return obj


class Presence(StanzaBase):
    """
    An XMPP presence stanza. A missing ``type`` attribute reads as
    :attr:`~.PresenceType.AVAILABLE`.
    """

    TAG = "presence"
    TYPE_ENUM = structs.PresenceType
    DEFAULT_TYPE = structs.PresenceType.AVAILABLE

    def __init__(self, type_=structs.PresenceType.AVAILABLE, **kwargs):
        super().__init__(**kwargs)
        self.type_ = type_

    @property
    def show(self):
        value = self._child_text("show")
        if value is None:
            return None
        try:
            return structs.PresenceShow(value)
        except ValueError:
            return None

    @show.setter
    def show(self, value):
        if value is not None:
            value = structs.PresenceShow(value).value
        self._set_child_text("show", value)

    @property
    def status(self):
        return self._child_text("status")

    @status.setter
    def status(self, value):
        self._set_child_text("status", value)

    @property
    def priority(self):
        """
        The priority as :class:`int` in the range -128..127. Missing or
        malformed values read as 0.

        Values outside the range are rejected with :class:`ValueError`.
        Negative values are written as 0.
        """
        value = self._child_text("priority")
        if value is None:
            return 0
        try:
            value = int(value)
        except ValueError:
            return 0
        return min(max(value, -128), 127)

    @priority.setter
    def priority(self, value):
        if value is None:
            self._set_child_text("priority", None)
            return
        value = int(value)
        if not -128 <= value <= 127:
            raise ValueError("priority out of range: {}".format(value))
        self._set_child_text("priority", str(max(value, 0)))


class IQ(StanzaBase):
    """
    An XMPP IQ stanza. The type is mandatory; :attr:`type_` reads as
    :data:`None` if it is missing or unknown.

    .. automethod:: get_query

    .. automethod:: add_query

    .. autoattribute:: payload

    .. automethod:: make_reply
    """

    TAG = "iq"
    TYPE_ENUM = structs.IQType

    def __init__(self, type_, **kwargs):
        super().__init__(**kwargs)
        self.type_ = type_

    @property
    def is_request(self):
        type_ = self.type_
        return type_ is not None and type_.is_request

    @property
    def is_response(self):
        type_ = self.type_
        return type_ is not None and type_.is_response

    def get_query(self, namespace):
        """
        Return the ``query`` child in `namespace` or :data:`None`.
        """
        return self._xml.get_first_child("query", namespace)

    def add_query(self, namespace, name="query"):
        return self._xml.add_child(name, namespace)

    @property
    def payload(self):
        """
        The first child element which is not an ``<error/>``, or
        :data:`None`.
        """
        for child in self._xml.get_children():
            if child.name == "error" and \
                    child.namespace == self._xml.namespace:
                continue
            return child
        return None

    def make_reply(self, type_=structs.IQType.RESULT):
        """
        Create a response to this request. :attr:`id_` is kept, :attr:`from_`
        and :attr:`to` are swapped.

        :raises ValueError: if this IQ is not a request.
        """
        if not self.is_request:
            raise ValueError("make_reply requires request IQ")
        return super()._make_reply(type_)

    def make_error_reply(self, error):
        if not self.is_request:
            raise ValueError("make_error_reply requires request IQ")
        return super().make_error_reply(error)

    def __repr__(self):
        payload = ""
        type_ = self.type_
        if type_ is not None and type_.is_error:
            payload = " error={!r}".format(self.error)
        elif self.payload is not None:
            payload = " data={!r}".format(self.payload)

        return "<iq from={} to={} id={} type={}{}>".format(
            _safe_format_attr(self, "from_"),
            _safe_format_attr(self, "to"),
            _safe_format_attr(self, "id_"),
            _safe_format_attr(self, "type_"),
            payload,
        )


STANZA_CLASSES = {
    cls.TAG: cls
    for cls in [Message, Presence, IQ]
}


def from_element(el):
    """
    Wrap the stream-level element `el` into the stanza class matching its
    tag. Return :data:`None` for anything else, including stanza names
    outside the ``jabber:component:accept`` namespace.
    """
    if el.namespace != namespaces.component_accept:
        return None
    try:
        cls = STANZA_CLASSES[el.name]
    except KeyError:
        return None
    return cls.wrap(el)
