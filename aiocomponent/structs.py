########################################################################
# File name: structs.py
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
:mod:`~aiocomponent.structs` --- Addresses and stanza type enumerations
#######################################################################

Stanza types
============

The ``type`` attributes of the three stanza kinds and of stanza errors are
modelled as :class:`enum.Enum` subclasses whose values are the attribute
values on the wire.

.. autoclass:: IQType

.. autoclass:: MessageType

.. autoclass:: PresenceType

.. autoclass:: PresenceShow

.. autoclass:: ErrorType

Jabber IDs
==========

.. autoclass:: JID(localpart, domain, resource)

.. autofunction:: jid

.. autofunction:: make_jid

.. autodata:: JID_CACHE_SIZE

"""

import collections
import enum

from . import cache, errors


#: Maximum number of parsed :class:`JID` objects kept by :func:`jid`.
JID_CACHE_SIZE = 256


class ErrorType(enum.Enum):
    """
    The ``type`` of a stanza ``<error/>`` (:rfc:`6120`, section 8.3.2),
    telling the sender how to go on:

    ==================  ===============================================
    :attr:`AUTH`        retry with credentials
    :attr:`CANCEL`      give up, the error is permanent
    :attr:`CONTINUE`    go on, this is a warning only
    :attr:`MODIFY`      retry with changed data
    :attr:`WAIT`        retry later, the error is temporary
    ==================  ===============================================
    """

    AUTH = "auth"
    CANCEL = "cancel"
    CONTINUE = "continue"
    MODIFY = "modify"
    WAIT = "wait"


class MessageType(enum.Enum):
    """
    Message types of :rfc:`6121`. A ``<message/>`` without ``type`` is
    :attr:`NORMAL`.

    Messages have no request/response pairing; only :attr:`ERROR` counts as
    a response, since it answers an earlier message.
    """

    NORMAL = "normal"
    CHAT = "chat"
    GROUPCHAT = "groupchat"
    HEADLINE = "headline"
    ERROR = "error"

    @property
    def is_error(self):
        return self is MessageType.ERROR

    @property
    def is_response(self):
        return self is MessageType.ERROR

    @property
    def is_request(self):
        return False


class PresenceType(enum.Enum):
    """
    Presence types of :rfc:`6121`. A ``<presence/>`` without ``type`` is
    :attr:`AVAILABLE`, whose value is :data:`None`.

    .. autoattribute:: is_presence_state
    """

    ERROR = "error"
    PROBE = "probe"
    SUBSCRIBE = "subscribe"
    SUBSCRIBED = "subscribed"
    UNAVAILABLE = "unavailable"
    UNSUBSCRIBE = "unsubscribe"
    UNSUBSCRIBED = "unsubscribed"
    AVAILABLE = None

    @property
    def is_error(self):
        return self is PresenceType.ERROR

    @property
    def is_response(self):
        return self is PresenceType.ERROR

    @property
    def is_request(self):
        return False

    @property
    def is_presence_state(self):
        """
        Whether this type announces availability (:attr:`AVAILABLE` or
        :attr:`UNAVAILABLE`) as opposed to managing subscriptions.
        """
        return self in (PresenceType.AVAILABLE, PresenceType.UNAVAILABLE)


class PresenceShow(enum.Enum):
    """
    Values of the ``<show/>`` child of an available presence: :attr:`AWAY`,
    :attr:`CHAT` (free for chat), :attr:`DND` (do not disturb) and
    :attr:`XA` (away for a long time).
    """
    AWAY = "away"
    CHAT = "chat"
    DND = "dnd"
    XA = "xa"


class IQType(enum.Enum):
    """
    IQ types of :rfc:`6120`.

    A request (:attr:`GET`, :attr:`SET`) is answered by exactly one response
    (:attr:`RESULT`, :attr:`ERROR`) with the same ``id``.

    .. autoattribute:: is_error

    .. autoattribute:: is_request

    .. autoattribute:: is_response
    """

    GET = "get"
    SET = "set"
    ERROR = "error"
    RESULT = "result"

    @property
    def is_error(self):
        """
        Whether this is :attr:`ERROR`.
        """
        return self is IQType.ERROR

    @property
    def is_request(self):
        """
        Whether this is :attr:`GET` or :attr:`SET`.
        """
        return self in (IQType.GET, IQType.SET)

    @property
    def is_response(self):
        """
        Whether this is :attr:`RESULT` or :attr:`ERROR`.
        """
        return self in (IQType.RESULT, IQType.ERROR)


_JIDBase = collections.namedtuple("JID", ["localpart", "domain", "resource"])


class JID(_JIDBase):
    """
    An XMPP address, ``[localpart@]domain[/resource]``.

    :param localpart: Part before the ``@``, or :data:`None` for none.
    :param domain: The domain; mandatory.
    :param resource: Part after the ``/``, or :data:`None` for none.
    :raises aiocomponent.errors.JIDParseError: if `domain` is empty, or if
        `localpart` or `resource` is the empty string (an absent part is
        :data:`None`, never ``""``).

    Instances are immutable tuples and compare by their three parts. Parse
    strings with :meth:`fromstr`, or with :func:`jid` to share instances.

    .. automethod:: fromstr

    .. automethod:: bare

    .. automethod:: replace(*, [localpart], [domain], [resource])

    .. automethod:: equals_bare
    """

    __slots__ = []

    def __new__(cls, localpart, domain, resource):
        if not domain:
            raise errors.JIDParseError("domain must not be empty or None")
        for name, part in (("localpart", localpart), ("resource", resource)):
            if part is not None and not part:
                raise errors.JIDParseError(
                    "{} must not be empty".format(name)
                )
        return super().__new__(cls, localpart, domain, resource)

    def replace(self, **kwargs):
        """
        Return a copy with the given parts replaced; the result is validated
        like a newly constructed JID.
        """
        parts = self._asdict()
        unknown = set(kwargs) - set(parts)
        if unknown:
            raise TypeError("replace() got an unexpected keyword argument"
                            " {!r}".format(unknown.pop()))
        parts.update(kwargs)
        return type(self)(**parts)

    def __str__(self):
        text = self.domain
        if self.localpart:
            text = "{}@{}".format(self.localpart, text)
        if self.resource:
            text = "{}/{}".format(text, self.resource)
        return text

    def bare(self):
        """
        Return this JID without its resource (``self`` if it has none).
        """
        if self.resource is None:
            return self
        return self.replace(resource=None)

    def equals_bare(self, other):
        """
        Compare with `other`, ignoring resources.
        """
        return self.bare() == other.bare()

    @property
    def is_bare(self):
        """
        Whether the JID has no resource.
        """
        return not self.resource

    @property
    def is_domain(self):
        """
        Whether the JID consists of the domain only.
        """
        return not self.resource and not self.localpart

    @classmethod
    def fromstr(cls, s):
        """
        Parse `s`. The localpart ends at the first ``@``; the resource
        starts at the first ``/`` after it (or after the start, without
        ``@``) and may itself contain ``@`` and ``/``.

        :raises aiocomponent.errors.JIDParseError: if `s` is not a valid JID
        """
        if not s:
            raise errors.JIDParseError("JID must not be empty")

        localpart, sep, rest = s.partition("@")
        if not sep:
            localpart, rest = None, s
        elif not localpart:
            raise errors.JIDParseError("localpart must not be empty")

        domain, sep, resource = rest.partition("/")
        if not domain:
            raise errors.JIDParseError("domain must not be empty")
        if not sep:
            resource = None
        elif not resource:
            raise errors.JIDParseError("resource must not be empty")

        return cls(localpart, domain, resource)


_jid_cache = cache.LRUDict(maxsize=JID_CACHE_SIZE)


def jid(s):
    """
    Parse `s` like :meth:`JID.fromstr`, sharing instances through a
    process-wide cache of :data:`JID_CACHE_SIZE` entries keyed by `s`.

    :return: The :class:`JID`, or :data:`None` if `s` is empty or invalid.
    """
    if not s:
        return None
    try:
        return _jid_cache.get_or_insert(s, JID.fromstr)
    except errors.JIDParseError:
        return None


def make_jid(domain, localpart=None, resource=None):
    """
    Build a :class:`JID` from its parts and put it into the cache used by
    :func:`jid`, keyed by its string form.

    :raises aiocomponent.errors.JIDParseError: if the parts do not form a
        valid JID.
    """
    result = JID(localpart, domain, resource)
    _jid_cache[str(result)] = result
    return result
