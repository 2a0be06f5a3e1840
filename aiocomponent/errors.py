########################################################################
# File name: errors.py
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
:mod:`~aiocomponent.errors` --- Exception classes
#################################################

Stream errors
=============

.. autoclass:: StreamError

.. autoclass:: StreamErrorCondition

Stanza errors
=============

.. autoclass:: StanzaError

.. autoclass:: XMPPError

.. autoclass:: ErrorCondition

.. autoclass:: XMPPAuthError

.. autoclass:: XMPPModifyError

.. autoclass:: XMPPCancelError

.. autoclass:: XMPPWaitError

.. autoclass:: XMPPContinueError

Address and configuration errors
================================

.. autoclass:: JIDParseError

.. autoclass:: ConfigurationError

"""
import enum

from . import structs
from .utils import namespaces


def format_error_text(condition, text=None):
    namespace, localname = condition.value
    result = "{{{}}}{}".format(namespace, localname)
    if text:
        result = "{} ({!r})".format(result, text)
    return result


class ErrorCondition(enum.Enum):
    """
    Stanza error conditions of :rfc:`6120` (section 8.3.3). Each value is
    the ``(namespace, localname)`` pair of the condition element inside
    ``<error/>``.
    """

    BAD_REQUEST = (namespaces.stanzas, "bad-request")
    CONFLICT = (namespaces.stanzas, "conflict")
    FEATURE_NOT_IMPLEMENTED = (namespaces.stanzas, "feature-not-implemented")
    FORBIDDEN = (namespaces.stanzas, "forbidden")
    GONE = (namespaces.stanzas, "gone")
    INTERNAL_SERVER_ERROR = (namespaces.stanzas, "internal-server-error")
    ITEM_NOT_FOUND = (namespaces.stanzas, "item-not-found")
    JID_MALFORMED = (namespaces.stanzas, "jid-malformed")
    NOT_ACCEPTABLE = (namespaces.stanzas, "not-acceptable")
    NOT_ALLOWED = (namespaces.stanzas, "not-allowed")
    NOT_AUTHORIZED = (namespaces.stanzas, "not-authorized")
    POLICY_VIOLATION = (namespaces.stanzas, "policy-violation")
    RECIPIENT_UNAVAILABLE = (namespaces.stanzas, "recipient-unavailable")
    REDIRECT = (namespaces.stanzas, "redirect")
    REGISTRATION_REQUIRED = (namespaces.stanzas, "registration-required")
    REMOTE_SERVER_NOT_FOUND = (namespaces.stanzas, "remote-server-not-found")
    REMOTE_SERVER_TIMEOUT = (namespaces.stanzas, "remote-server-timeout")
    RESOURCE_CONSTRAINT = (namespaces.stanzas, "resource-constraint")
    SERVICE_UNAVAILABLE = (namespaces.stanzas, "service-unavailable")
    SUBSCRIPTION_REQUIRED = (namespaces.stanzas, "subscription-required")
    UNDEFINED_CONDITION = (namespaces.stanzas, "undefined-condition")
    UNEXPECTED_REQUEST = (namespaces.stanzas, "unexpected-request")


class StreamErrorCondition(enum.Enum):
    """
    Stream error conditions of :rfc:`6120` (section 4.9.3), valued like
    :class:`ErrorCondition`. The component runtime raises only a few of
    them itself; the others may arrive from the server.
    """

    BAD_FORMAT = (namespaces.streams, "bad-format")
    BAD_NAMESPACE_PREFIX = (namespaces.streams, "bad-namespace-prefix")
    CONFLICT = (namespaces.streams, "conflict")
    CONNECTION_TIMEOUT = (namespaces.streams, "connection-timeout")
    HOST_GONE = (namespaces.streams, "host-gone")
    HOST_UNKNOWN = (namespaces.streams, "host-unknown")
    IMPROPER_ADDRESSING = (namespaces.streams, "improper-addressing")
    INTERNAL_SERVER_ERROR = (namespaces.streams, "internal-server-error")
    INVALID_FROM = (namespaces.streams, "invalid-from")
    INVALID_NAMESPACE = (namespaces.streams, "invalid-namespace")
    INVALID_XML = (namespaces.streams, "invalid-xml")
    NOT_AUTHORIZED = (namespaces.streams, "not-authorized")
    NOT_WELL_FORMED = (namespaces.streams, "not-well-formed")
    POLICY_VIOLATION = (namespaces.streams, "policy-violation")
    REMOTE_CONNECTION_FAILED = (namespaces.streams, "remote-connection-failed")
    RESET = (namespaces.streams, "reset")
    RESOURCE_CONSTRAINT = (namespaces.streams, "resource-constraint")
    RESTRICTED_XML = (namespaces.streams, "restricted-xml")
    SEE_OTHER_HOST = (namespaces.streams, "see-other-host")
    SYSTEM_SHUTDOWN = (namespaces.streams, "system-shutdown")
    UNDEFINED_CONDITION = (namespaces.streams, "undefined-condition")
    UNSUPPORTED_ENCODING = (namespaces.streams, "unsupported-encoding")
    UNSUPPORTED_FEATURE = (namespaces.streams, "unsupported-feature")
    UNSUPPORTED_STANZA_TYPE = (namespaces.streams, "unsupported-stanza-type")
    UNSUPPORTED_VERSION = (namespaces.streams, "unsupported-version")


class StreamError(ConnectionError):
    """
    A stream-level error. Raising it at the stream boundary aborts the stream;
    receiving a ``<stream:error/>`` from the peer produces one, too.

    .. attribute:: condition

       The :class:`StreamErrorCondition` member.

    .. attribute:: text

       Optional human-readable text.
    """

    def __init__(self, condition, text=None):
        if not isinstance(condition, StreamErrorCondition):
            condition = StreamErrorCondition(condition)
        super().__init__("stream error: {}".format(
            format_error_text(condition, text))
        )
        self.condition = condition
        self.text = text


class StanzaError(Exception):
    pass


class XMPPError(StanzaError):
    """
    A stanza-level error, raised for a received error reply and raised by
    handlers to make the dispatcher send one.

    :param condition: Error condition; anything :class:`ErrorCondition`
        accepts as value is converted.
    :param text: Human-readable description, or :data:`None`.
    :param stanza: The error stanza which carried the error, if any.

    The ``type`` of the error on the wire follows from the subclass (see
    :attr:`TYPE`); :meth:`aiocomponent.stanza.Error.to_exception` picks the
    subclass for a received error.

    .. autoattribute:: condition

    .. attribute:: text

        The description passed to the constructor.

    .. attribute:: stanza

        The :class:`~aiocomponent.stanza.IQ` (or other stanza) the error was
        received in. :data:`None` for locally raised errors.

    Subclasses by error type:

    .. autosummary::
       XMPPAuthError
       XMPPModifyError
       XMPPCancelError
       XMPPContinueError
       XMPPWaitError
    """

    TYPE = structs.ErrorType.CANCEL

    def __init__(self, condition, text=None, stanza=None):
        if not isinstance(condition, ErrorCondition):
            condition = ErrorCondition(condition)
        super().__init__(format_error_text(condition, text=text))
        self._condition = condition
        self.text = text
        self.stanza = stanza

    @property
    def condition(self):
        """
        The :class:`ErrorCondition` of this error. Read-only.
        """
        return self._condition


class XMPPWarning(XMPPError, UserWarning):
    TYPE = structs.ErrorType.CONTINUE


class XMPPAuthError(XMPPError, PermissionError):
    TYPE = structs.ErrorType.AUTH


class XMPPModifyError(XMPPError, ValueError):
    TYPE = structs.ErrorType.MODIFY


class XMPPCancelError(XMPPError):
    TYPE = structs.ErrorType.CANCEL


class XMPPWaitError(XMPPError):
    TYPE = structs.ErrorType.WAIT


class XMPPContinueError(XMPPWarning):
    TYPE = structs.ErrorType.CONTINUE


EXCEPTION_CLS_MAP = {
    structs.ErrorType.AUTH: XMPPAuthError,
    structs.ErrorType.CANCEL: XMPPCancelError,
    structs.ErrorType.CONTINUE: XMPPContinueError,
    structs.ErrorType.MODIFY: XMPPModifyError,
    structs.ErrorType.WAIT: XMPPWaitError,
}


class JIDParseError(ValueError):
    """
    Raised by :meth:`aiocomponent.structs.JID.fromstr` and the
    :class:`~aiocomponent.structs.JID` constructor for malformed addresses.
    """


class ConfigurationError(ValueError):
    """
    Raised when the component runtime is configured with invalid values, for
    example a malformed host name or a missing secret.
    """
