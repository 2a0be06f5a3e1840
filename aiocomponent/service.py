########################################################################
# File name: service.py
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
:mod:`~aiocomponent.service` --- Running a component

:class:`ComponentService` connects a :class:`~.component.Component` to an
XMPP server: it opens the TCP connection, runs the
:class:`~.protocol.ComponentStream` on it and wires a
:class:`~.dispatcher.StanzaDispatcher` between stream and component.

.. autoclass:: ComponentService

.. autofunction:: parse_server_address

"""
import asyncio
import logging

from . import dispatcher, errors, protocol, structs


logger = logging.getLogger(__name__)


def parse_server_address(value):
    """
    Normalise `value` into a ``(host, port)`` tuple.

    `value` may be such a tuple already or a string of the form
    ``"host:port"``. IPv6 literals must be enclosed in brackets
    (``"[::1]:5347"``).

    :raises aiocomponent.errors.ConfigurationError: if `value` is malformed.
    """
    if isinstance(value, str):
        host, sep, port = value.rpartition(":")
        if not sep or not host:
            raise errors.ConfigurationError(
                "server address must be host:port, got {!r}".format(value)
            )
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]
    else:
        try:
            host, port = value
        except (TypeError, ValueError):
            raise errors.ConfigurationError(
                "server address must be (host, port), got {!r}".format(value)
            ) from None

    try:
        port = int(port)
    except (TypeError, ValueError):
        raise errors.ConfigurationError(
            "invalid port in server address: {!r}".format(port)
        ) from None

    if not host or not 0 < port < 65536:
        raise errors.ConfigurationError(
            "invalid server address: {!r}".format(value)
        )

    return str(host), port


def _parent_domain(jid):
    _, sep, parent = jid.domain.partition(".")
    if not sep or "." not in parent:
        return jid
    return structs.make_jid(parent)


class ComponentService:
    """
    Connect `component` to the server at `server_address` as `xmpp_host`.

    :param component: The component to run.
    :type component: :class:`~.component.Component`
    :param server_address: Address of the server's component port, either
        ``(host, port)`` or ``"host:port"``.
    :param xmpp_host: The domain of the component. It is sent as ``to`` of the
        stream header and the server must confirm it as ``from``.
    :type xmpp_host: :class:`str` or :class:`~.structs.JID`
    :param xmpp_secret: The secret shared with the server.
    :type xmpp_secret: :class:`str`
    :param server_jid: The address of the server; defaults to the parent
        domain of `xmpp_host`.
    :param base_logger: Parent logger for stream and dispatcher.
    :raises aiocomponent.errors.ConfigurationError: if any of the values is
        invalid.

    .. automethod:: start

    .. automethod:: stop

    .. automethod:: wait_closed

    .. automethod:: run
    """

    def __init__(self, component, server_address, xmpp_host, xmpp_secret,
                 *,
                 server_jid=None,
                 base_logger=logging.getLogger("aiocomponent"),
                 loop=None):
        super().__init__()
        if component is None:
            raise errors.ConfigurationError("component must not be None")

        self.server_address = parse_server_address(server_address)

        host = structs.jid(str(xmpp_host)) if xmpp_host else None
        if host is None or not host.is_domain:
            raise errors.ConfigurationError(
                "xmpp_host must be a domain, got {!r}".format(xmpp_host)
            )

        if not xmpp_secret:
            raise errors.ConfigurationError("xmpp_secret must not be empty")

        if server_jid is None:
            server_jid = _parent_domain(host)
        elif not isinstance(server_jid, structs.JID):
            parsed = structs.jid(server_jid)
            if parsed is None:
                raise errors.ConfigurationError(
                    "invalid server_jid: {!r}".format(server_jid)
                )
            server_jid = parsed

        self.component = component
        self.xmpp_host = host
        self.server_jid = server_jid
        self._xmpp_secret = xmpp_secret
        self._base_logger = base_logger
        self._logger = base_logger.getChild("ComponentService")
        self._loop = loop
        self._stream = None
        self._dispatcher = None

    @property
    def stream(self):
        """
        The :class:`~.protocol.ComponentStream` of the current or last
        connection, or :data:`None`.
        """
        return self._stream

    @property
    def dispatcher(self):
        return self._dispatcher

    @property
    def running(self):
        return (self._stream is not None and
                self._stream.state != protocol.State.DISCONNECTED)

    def _stream_ready(self):
        self._logger.info("component %s is ready", self.xmpp_host)
        self.component.attach(self._dispatcher,
                              self.xmpp_host,
                              self.server_jid)
        self.component.connected()

    def _stream_closing(self, exc):
        if exc is not None:
            self._logger.warning("component stream failed: %s", exc)
        else:
            self._logger.info("component stream closed")
        self.component.detach()

    def _make_stream(self, loop):
        stream = protocol.ComponentStream(
            self.xmpp_host,
            self._xmpp_secret,
            base_logger=self._base_logger,
            loop=loop,
        )
        self._dispatcher = dispatcher.StanzaDispatcher(
            self.component,
            stream,
            base_logger=self._base_logger,
            loop=loop,
        )
        stream.on_ready.connect(self._stream_ready)
        stream.on_closing.connect(self._stream_closing)
        return stream

    async def start(self):
        """
        Connect to the server and wait for the handshake to complete.

        :raises OSError: if the connection cannot be established.
        :raises ConnectionError: if the stream fails before it is ready,
            usually an :class:`~.errors.StreamError`.
        :raises RuntimeError: if the service is running already.

        When :meth:`start` returns, the component has been attached and its
        :meth:`~.Component.connected` method has been called.
        """
        if self.running:
            raise RuntimeError("component service is already running")

        loop = self._loop or asyncio.get_running_loop()
        stream = self._make_stream(loop)
        self._stream = stream

        host, port = self.server_address
        self._logger.info("connecting to %s:%d as %s",
                          host, port, self.xmpp_host)
        try:
            await loop.create_connection(lambda: stream, host, port)
        except OSError:
            self._stream = None
            raise

        try:
            await stream.wait_ready()
        except asyncio.CancelledError:
            stream.abort()
            raise

    async def wait_closed(self):
        """
        Wait until the connection has ended.

        :raises Exception: the stream or transport error which ended the
            connection, if any.
        """
        if self._stream is None:
            return
        await self._stream.wait_closed()
        if self._stream.exception is not None:
            raise self._stream.exception

    async def stop(self):
        """
        Disconnect cleanly: :meth:`~.Component.will_disconnect` is called,
        the stream footer is sent and the connection is closed.

        Calling :meth:`stop` on a service which is not running is a no-op.
        """
        stream = self._stream
        if stream is None or stream.state == protocol.State.DISCONNECTED:
            return

        if stream.state == protocol.State.READY:
            try:
                self.component.will_disconnect()
            except Exception:
                self._logger.exception("will_disconnect handler failed")

        stream.close()
        await stream.wait_closed()

    async def run(self):
        """
        Start the service and keep it running until the connection ends or
        the coroutine is cancelled. The service is always stopped cleanly
        when this returns.
        """
        await self.start()
        try:
            await self.wait_closed()
        finally:
            await self.stop()
