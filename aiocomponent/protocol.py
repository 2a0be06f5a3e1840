########################################################################
# File name: protocol.py
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
:mod:`~aiocomponent.protocol` --- Component stream implementation

This module contains the :class:`ComponentStream` class, which implements the
accept variant of the Jabber Component Protocol (:xep:`114`). It is an
:class:`asyncio.Protocol` which performs the handshake, turns the received
bytes into stanzas (using :mod:`aiocomponent.framing`) and serialises
outbound stanzas (using :mod:`aiocomponent.xml`).

.. autoclass:: ComponentStream

.. autofunction:: compute_handshake

Enumerations
============

.. autoclass:: State

"""

import asyncio
import contextlib
import functools
import hashlib
import logging

from enum import Enum

from . import callbacks, element, errors, framing, stanza, statemachine, xml
from .utils import namespaces

logger = logging.getLogger(__name__)


def compute_handshake(stream_id, secret):
    """
    Return the handshake digest for `stream_id` and `secret`: the lowercase
    hexadecimal SHA-1 of the UTF-8 encoded concatenation of both.
    """
    return hashlib.sha1(
        stream_id.encode("utf-8") + secret.encode("utf-8")
    ).hexdigest()


@functools.total_ordering
class State(Enum):
    """
    The possible states of a :class:`ComponentStream`:

    .. attribute:: CONNECT

       The initial state. The stream header is sent when the transport
       connects; the stream waits for the header of the peer.

    .. attribute:: AUTHENTICATE

       The peer header was valid and the handshake digest has been sent. The
       stream waits for the ``<handshake/>`` confirmation.

    .. attribute:: READY

       Stanzas can be sent and are received.

    .. attribute:: DISCONNECTED

       The stream has been closed, either regularly or because of an error.
       This is the final state.

    """

    def __lt__(self, other):
        return self.value < other.value

    CONNECT = 0
    AUTHENTICATE = 1
    READY = 2
    DISCONNECTED = 3


class DebugWrapper:
    """
    Pass writes through to `dest`, logging each of them to `logger` at
    DEBUG level. Inside :meth:`mute`, only the length of the data is logged.
    """

    def __init__(self, dest, logger):
        self.dest = dest
        self.logger = logger
        self._muted = False

    def write(self, data):
        if self._muted:
            self.logger.debug("SENT <%d bytes not logged>", len(data))
        else:
            self.logger.debug("SENT %r", data)
        return self.dest.write(data)

    @contextlib.contextmanager
    def mute(self):
        self._muted = True
        try:
            yield
        finally:
            self._muted = False


def make_stream_error(exc):
    """
    Build the ``<stream:error/>`` element for the
    :class:`~.errors.StreamError` `exc`.
    """
    el = element.XMLElement("error", namespaces.xmlstream)
    cond_ns, cond_name = exc.condition.value
    el.add_child(cond_name, cond_ns)
    if exc.text:
        el.add_child("text", namespaces.streams).text = exc.text
    return el


def parse_stream_error(el):
    """
    Convert a received ``<stream:error/>`` element into a
    :class:`~.errors.StreamError`. Unknown conditions are mapped to
    ``undefined-condition``.
    """
    condition = errors.StreamErrorCondition.UNDEFINED_CONDITION
    for child in el.get_children(namespace=namespaces.streams):
        if child.name == "text":
            continue
        try:
            condition = errors.StreamErrorCondition(
                (child.namespace, child.name)
            )
        except ValueError:
            continue
        break
    text = el.get_child_text("text", namespaces.streams)
    return errors.StreamError(condition, text)


class ComponentStream(asyncio.Protocol):
    """
    :class:`asyncio.Protocol` speaking the accept side of the component
    protocol (:xep:`114`): it sends the stream header, answers the server
    header with the SHA-1 handshake and then exchanges stanzas.

    :param host: The host name of the component.
    :type host: :class:`~aiocomponent.structs.JID` or :class:`str`
    :param secret: The secret shared with the server.
    :type secret: :class:`str`
    :param sorted_attributes: Write attributes in sorted order, for tests.
    :type sorted_attributes: :class:`bool`
    :param base_logger: Logger below which the ``ComponentStream`` child
        logger is created.
    :type base_logger: :class:`logging.Logger`

    `host` is sent as ``to`` attribute of the stream header, and the server
    must send it back as the ``from`` attribute of its header. Otherwise,
    the stream fails with ``invalid-from``.

    Stanza input:

    .. attribute:: stanza_handler

       Callable which is called with every stanza received in
       :attr:`~State.READY` state (a :class:`~.stanza.Message`,
       :class:`~.stanza.Presence` or :class:`~.stanza.IQ`). If it raises, the
       stream is failed with ``internal-server-error``. Stanzas are dropped
       while this is :data:`None`.

    Stanza output:

    .. automethod:: send_stanza

    Shutting down:

    .. automethod:: close

    .. automethod:: abort

    Debug logging:

    .. automethod:: mute

    Waiting:

    .. automethod:: wait_ready

    .. automethod:: wait_closed

    .. automethod:: error_future

    Signals:

    .. signal:: on_ready()

       Fires when the server has confirmed the handshake.

    .. signal:: on_closing(reason)

       Fires when the stream enters :attr:`~State.DISCONNECTED`. The argument
       is the exception which killed the stream or :data:`None` if the
       stream was closed regularly.

    """

    on_ready = callbacks.Signal()
    on_closing = callbacks.Signal()

    def __init__(self, host, secret,
                 sorted_attributes=False,
                 base_logger=logging.getLogger("aiocomponent"),
                 loop=None):
        self._host = str(host)
        self._secret = secret
        self._sorted_attributes = sorted_attributes
        self._logger = base_logger.getChild("ComponentStream")
        self._loop = loop
        self._transport = None
        self._transport_closing = False
        self._writer = None
        self._decoder = None
        self._debug_wrapper = None
        self._exception = None
        self._error_futures = []
        self._stream_id = None
        self._smachine = statemachine.OrderedStateMachine(State.CONNECT,
                                                          loop=loop)
        self.stanza_handler = None

    def _invalid_state(self, at=None):
        text = "invalid state: {}".format(self._smachine.state)
        if at:
            text += " (at: {})".format(at)
        return RuntimeError(text)

    def _close_transport(self):
        if self._transport_closing or self._transport is None:
            return
        self._transport_closing = True
        self._transport.close()

    def _enter_disconnected(self):
        if self._smachine.state == State.DISCONNECTED:
            return
        self._smachine.state = State.DISCONNECTED

        exc = self._exception
        if exc is None:
            exc = ConnectionError("stream shut down")
        for fut in self._error_futures:
            if not fut.done():
                fut.set_exception(exc)
        self._error_futures.clear()

        self.on_closing(self._exception)

    def _fail(self, err):
        self._exception = err
        self.close()

    def _require_connection(self):
        if self._smachine.state == State.READY:
            return

        if self._exception:
            raise self._exception

        raise ConnectionError("component stream not ready")

    def _rx_stream_header(self, ev):
        if self._smachine.state != State.CONNECT:
            raise errors.StreamError(
                errors.StreamErrorCondition.INVALID_XML,
                "unexpected stream header"
            )

        if ev.name != (namespaces.xmlstream, "stream"):
            raise errors.StreamError(
                errors.StreamErrorCondition.INVALID_NAMESPACE,
                "stream root must be {{{}}}stream".format(
                    namespaces.xmlstream)
            )

        if ev.nsmap.get(None) != namespaces.component_accept:
            raise errors.StreamError(
                errors.StreamErrorCondition.INVALID_NAMESPACE,
                "default namespace must be {}".format(
                    namespaces.component_accept)
            )

        from_ = ev.attributes.get((None, "from"))
        if from_ != self._host:
            raise errors.StreamError(
                errors.StreamErrorCondition.INVALID_FROM,
                "expected from={!r}, got {!r}".format(self._host, from_)
            )

        stream_id = ev.attributes.get((None, "id"))
        if not stream_id:
            raise errors.StreamError(
                errors.StreamErrorCondition.INVALID_XML,
                "stream header lacks an id"
            )

        self._stream_id = stream_id
        self._smachine.state = State.AUTHENTICATE
        self._logger.debug("stream header received, id=%r", stream_id)

        handshake = element.XMLElement("handshake",
                                       namespaces.component_accept)
        handshake.text = compute_handshake(stream_id, self._secret)
        with self.mute():
            self._writer.send(handshake)

    def _rx_stream_footer(self):
        if self._smachine.state < State.READY and self._exception is None:
            self._exception = ConnectionError(
                "stream closed by peer during handshake"
            )
        self._logger.debug("stream footer received")
        self.close()

    def _rx_stream_error(self, el):
        exc = parse_stream_error(el)
        self._logger.warning("stream error received: %s", exc)
        self._fail(exc)

    def _rx_handshake(self, el):
        if el.name != "handshake" or \
                el.namespace != namespaces.component_accept:
            raise errors.StreamError(
                errors.StreamErrorCondition.NOT_AUTHORIZED,
                "expected handshake, got {}".format(el.tag)
            )
        self._smachine.state = State.READY
        self._logger.debug("handshake accepted")
        self.on_ready()

    def _rx_stanza(self, el):
        stanza_obj = stanza.from_element(el)
        if stanza_obj is None:
            raise errors.StreamError(
                errors.StreamErrorCondition.UNSUPPORTED_STANZA_TYPE,
                "unsupported stanza: {}".format(el.tag)
            )

        if self.stanza_handler is None:
            self._logger.debug("no stanza handler, dropping %r", stanza_obj)
            return

        try:
            self.stanza_handler(stanza_obj)
        except Exception:
            self._logger.exception("stanza handler failed on %r", stanza_obj)
            raise errors.StreamError(
                errors.StreamErrorCondition.INTERNAL_SERVER_ERROR,
                "Internal error while handling stanza."
            )

    def _rx_element(self, el):
        if el.name == "error" and el.namespace == namespaces.xmlstream:
            self._rx_stream_error(el)
        elif self._smachine.state == State.AUTHENTICATE:
            self._rx_handshake(el)
        elif self._smachine.state == State.READY:
            self._rx_stanza(el)
        else:
            raise errors.StreamError(
                errors.StreamErrorCondition.INVALID_XML,
                "unexpected element {} in state {}".format(
                    el.tag, self._smachine.state)
            )

    def _rx_item(self, item):
        if self._smachine.state == State.DISCONNECTED:
            self._logger.warning(
                "protocol error: %r received after disconnect, ignored",
                item,
            )
            return

        if isinstance(item, framing.StartElement):
            self._rx_stream_header(item)
        elif isinstance(item, framing.EndElement):
            self._rx_stream_footer()
        else:
            self._rx_element(item)

    def _rx_feed(self, blob):
        try:
            items = self._decoder.feed(blob)
        except errors.StreamError:
            raise
        except Exception:
            self._logger.exception("XML decoder failed")
            raise errors.StreamError(
                errors.StreamErrorCondition.INTERNAL_SERVER_ERROR,
                "Internal error while parsing XML."
            )

        for item in items:
            self._rx_item(item)

    def connection_made(self, transport):
        if self._smachine.state != State.CONNECT or \
                self._transport is not None:
            raise self._invalid_state("connection_made")

        self._transport = transport
        self._decoder = framing.XMLStreamDecoder()

        if self._logger.getEffectiveLevel() <= logging.DEBUG:
            dest = DebugWrapper(self._transport, self._logger)
            self._debug_wrapper = dest
        else:
            dest = self._transport
        self._writer = xml.XMLStreamWriter(
            dest,
            self._host,
            nsmap={None: namespaces.component_accept},
            sorted_attributes=self._sorted_attributes)
        self._writer.start()

    def data_received(self, blob):
        self._logger.debug("RECV %r", blob)
        if self._smachine.state == State.DISCONNECTED:
            self._logger.warning(
                "protocol error: data received after disconnect, ignored"
            )
            return

        try:
            self._rx_feed(blob)
        except errors.StreamError as exc:
            if self._writer is not None and not self._writer.closed:
                self._writer.send(make_stream_error(exc))
            self._fail(exc)

    def eof_received(self):
        if self._smachine.state < State.READY and self._exception is None:
            self._exception = ConnectionError(
                "connection closed by peer during handshake"
            )
        elif self._smachine.state == State.READY:
            self._logger.debug("eof received without stream footer")
        self.close()

    def connection_lost(self, exc):
        # the transport is gone, nothing may be written anymore
        self._exception = self._exception or exc
        if self._writer is not None:
            self._writer.abort()
        self._writer = None
        self._decoder = None
        self._transport = None
        self._debug_wrapper = None
        self._enter_disconnected()

    def close(self):
        """
        Close the stream and the underlying transport.

        The stream footer is sent, followed by an EOF if the transport
        supports :meth:`asyncio.WriteTransport.write_eof`. Then the transport
        is closed and the stream enters :attr:`~State.DISCONNECTED`.

        Calling :meth:`close` on a disconnected stream is a no-op; this makes
        it safe to call when the peer has closed the stream first.
        """
        if self._smachine.state == State.DISCONNECTED:
            return
        if self._transport is not None:
            if self._writer is not None and not self._writer.closed:
                self._writer.close()
            if not self._transport_closing and \
                    self._transport.can_write_eof():
                self._transport.write_eof()
            self._close_transport()
        self._enter_disconnected()

    def abort(self):
        """
        Abort the stream by closing the transport immediately, without
        sending a stream footer. The stream is in :attr:`State.DISCONNECTED`
        state afterwards.
        """
        if self._smachine.state == State.DISCONNECTED:
            return
        if self._writer is not None:
            self._writer.abort()
        if self._transport is not None and not self._transport_closing:
            self._transport_closing = True
            self._transport.abort()
        self._enter_disconnected()

    def send_stanza(self, obj):
        """
        Send a stanza over the stream.

        :param obj: The stanza to send.
        :raises ConnectionError: if the stream is not in
            :attr:`~State.READY` state.
        :raises aiocomponent.errors.StreamError: if a stream error killed the
            stream.
        :raises Exception: if serialisation of `obj` failed; nothing is sent
            in that case and the stream stays usable.
        """
        self._require_connection()
        self._writer.send(obj)

    async def wait_ready(self):
        """
        Wait until the handshake has completed.

        If the stream is closed before, the exception which killed it is
        raised, or :class:`ConnectionError` if it was closed regularly.
        """
        try:
            await self._smachine.wait_for(State.READY)
        except statemachine.OrderedStateSkipped:
            if self._exception is not None:
                raise self._exception from None
            raise ConnectionError("stream closed before handshake "
                                  "completed") from None

    async def wait_closed(self):
        """
        Wait until the stream has entered :attr:`~State.DISCONNECTED`.
        """
        await self._smachine.wait_for(State.DISCONNECTED)

    def error_future(self):
        """
        Return a future which will receive the next stream error as
        exception. A regular close is reported as :class:`ConnectionError`.

        It is safe to cancel the future at any time.
        """
        loop = self._loop or asyncio.get_running_loop()
        fut = loop.create_future()
        if self._smachine.state == State.DISCONNECTED:
            fut.set_exception(
                self._exception or ConnectionError("stream shut down")
            )
        else:
            self._error_futures.append(fut)
        return fut

    @contextlib.contextmanager
    def mute(self):
        """
        Context manager which keeps the data written inside it out of the
        debug log; only its length is logged. Used for the handshake.
        """
        if self._debug_wrapper is None:
            yield
        else:
            with self._debug_wrapper.mute():
                yield

    @property
    def host(self):
        return self._host

    @property
    def stream_id(self):
        """
        The stream id sent by the server; :data:`None` before the server
        header has been received.
        """
        return self._stream_id

    @property
    def exception(self):
        """
        The exception which killed the stream, if any.
        """
        return self._exception

    @property
    def transport(self):
        """
        The :class:`asyncio.Transport` of the connection, or :data:`None`
        while not connected.
        """
        return self._transport

    @property
    def state(self):
        """
        The current :class:`State` of the stream.
        """
        return self._smachine.state
