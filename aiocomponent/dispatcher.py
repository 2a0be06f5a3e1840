########################################################################
# File name: dispatcher.py
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
:mod:`~aiocomponent.dispatcher` --- Routing stanzas to the component

The :class:`StanzaDispatcher` sits between a
:class:`~.protocol.ComponentStream` and a :class:`~.component.Component`. It
delivers inbound stanzas to the handlers of the component, answers IQ
requests with whatever the handler returns and correlates IQ responses with
the futures returned by :meth:`StanzaDispatcher.send_iq`.

.. autoclass:: StanzaDispatcher

"""
import asyncio
import functools
import inspect
import logging

from . import callbacks, errors, stanza, structs
from .protocol import State


class StanzaDispatcher:
    """
    Dispatch stanzas between `stream` and `component`.

    :param component: The component receiving the stanzas.
    :type component: :class:`~.component.Component`
    :param stream: The stream to receive from and send to.
    :type stream: :class:`~.protocol.ComponentStream`
    :param base_logger: Parent logger; the dispatcher logs to a child called
        ``StanzaDispatcher``.

    On construction, the dispatcher installs itself as
    :attr:`~.protocol.ComponentStream.stanza_handler` of `stream` and connects
    to its :meth:`~.protocol.ComponentStream.on_closing` signal.

    Pending IQ requests are kept in a :class:`~.callbacks.TagDispatcher`,
    keyed by the stanza id. When the stream closes, all of them are
    cancelled and :meth:`~.component.Component.disconnected` is called.

    .. automethod:: send

    .. automethod:: send_iq

    .. automethod:: process_stanza

    .. automethod:: connection_lost
    """

    def __init__(self, component, stream,
                 base_logger=logging.getLogger("aiocomponent"),
                 loop=None):
        super().__init__()
        self._component = component
        self._stream = stream
        self._logger = base_logger.getChild("StanzaDispatcher")
        self._loop = loop
        self._iq_response_map = callbacks.TagDispatcher()
        self._iq_request_tasks = []
        self._closed = False

        stream.stanza_handler = self.process_stanza
        self._closing_token = stream.on_closing.connect(self.connection_lost)

    def _get_loop(self):
        return self._loop or asyncio.get_running_loop()

    @property
    def connected(self):
        """
        Whether stanzas can currently be sent.
        """
        return not self._closed and self._stream.state == State.READY

    @property
    def pending_requests(self):
        """
        Number of IQ requests waiting for a response.
        """
        return len(self._iq_response_map)

    def send(self, stanza_obj):
        """
        Send `stanza_obj` if the stream is ready.

        Sending is best effort: if the stream is not ready, a warning is
        logged and the stanza is dropped. Returns whether the stanza was
        written.
        """
        if not self.connected:
            self._logger.warning("Disconnected, can't send stanza: %r",
                                 stanza_obj)
            return False

        self._logger.debug("sending stanza %r", stanza_obj)
        self._stream.send_stanza(stanza_obj)
        return True

    def send_iq(self, iq):
        """
        Send the IQ request `iq` and return a future for the response.

        :raises ValueError: if `iq` is not a ``get`` or ``set`` request.
        :raises ValueError: if a request with the same id is still pending.
        :return: A future which receives the ``result`` IQ, the
            :class:`~.errors.XMPPError` of an ``error`` IQ, or is cancelled
            if the stream disconnects first.
        :rtype: :class:`asyncio.Future`

        A random id is assigned if `iq` has none.
        """
        if not iq.is_request:
            raise ValueError("send_iq requires a get or set IQ, "
                             "got {!r}".format(iq.type_))

        iq.autoset_id()
        fut = self._get_loop().create_future()

        if not self.connected:
            self._logger.warning("Disconnected, can't send stanza: %r", iq)
            fut.cancel()
            return fut

        self._iq_response_map.add_future(iq.id_, fut)
        try:
            self._stream.send_stanza(iq)
        except Exception:
            self._iq_response_map.remove_future(iq.id_)
            raise
        return fut

    def _compose_undefined_condition(self, request):
        return request.make_error_reply(
            stanza.Error(
                condition=errors.ErrorCondition.UNDEFINED_CONDITION,
                type_=structs.ErrorType.CANCEL,
            )
        )

    def _send_iq_reply(self, request, result):
        if result is None:
            self._logger.warning("No IQ response for %r", request)
            response = request.make_error_reply(
                errors.XMPPCancelError(
                    errors.ErrorCondition.FEATURE_NOT_IMPLEMENTED
                )
            )
        elif isinstance(result, errors.XMPPError):
            response = request.make_error_reply(result)
        elif isinstance(result, stanza.IQ) and result.is_response:
            response = result
        else:
            self._logger.error("invalid IQ response %r for %r",
                               result, request)
            response = self._compose_undefined_condition(request)
        self.send(response)

    def _iq_request_coro_done_send_reply(self, request, task):
        """
        Called when an IQ request handler coroutine returns. `request` holds
        the IQ request which triggered the execution of the coroutine and
        `task` is the :class:`asyncio.Task` which tracks the running coroutine.
        """
        try:
            self._iq_request_tasks.remove(task)
        except ValueError:
            pass

        if task.cancelled():
            return

        try:
            result = task.result()
        except errors.XMPPError as err:
            self._send_iq_reply(request, err)
        except Exception:
            self._logger.exception("IQ request coroutine failed")
            self.send(self._compose_undefined_condition(request))
        else:
            self._send_iq_reply(request, result)

    def _process_iq_request(self, request):
        try:
            result = self._component.handle_iq(request)
        except errors.XMPPError as err:
            self._send_iq_reply(request, err)
            return
        except Exception:
            self._logger.exception("IQ request handler failed")
            self.send(self._compose_undefined_condition(request))
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result, loop=self._get_loop())
            task.add_done_callback(
                functools.partial(self._iq_request_coro_done_send_reply,
                                  request)
            )
            self._iq_request_tasks.append(task)
            self._logger.debug("started task to handle request: %r", task)
            return

        self._send_iq_reply(request, result)

    def _process_iq_response(self, response):
        if response.type_ == structs.IQType.ERROR:
            exc = response.error
            if exc is None:
                exc = errors.XMPPCancelError(
                    errors.ErrorCondition.UNDEFINED_CONDITION,
                    stanza=response,
                )
            deliver = functools.partial(self._iq_response_map.unicast_error,
                                        response.id_, exc)
        else:
            deliver = functools.partial(self._iq_response_map.unicast,
                                        response.id_, response)

        try:
            deliver()
        except KeyError:
            self._logger.warning(
                "unexpected IQ response: from=%r, id=%r",
                response.from_, response.id_,
            )
        else:
            self._logger.debug("iq response delivered to id %r",
                               response.id_)

    def _process_incoming_iq(self, stanza_obj):
        self._logger.debug("incoming iq: %r", stanza_obj)
        type_ = stanza_obj.type_
        if type_ is None:
            self._logger.warning("IQ not request or response, dropped: %r",
                                 stanza_obj)
        elif type_.is_request:
            self._process_iq_request(stanza_obj)
        else:
            self._process_iq_response(stanza_obj)

    def _call_handler(self, handler, stanza_obj):
        try:
            result = handler(stanza_obj)
        except Exception:
            self._logger.exception("handler %r failed on %r",
                                   handler, stanza_obj)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result, loop=self._get_loop())
            task.add_done_callback(
                functools.partial(callbacks.log_spawned, self._logger)
            )

    def process_stanza(self, stanza_obj):
        """
        Dispatch the inbound `stanza_obj` by its kind. Exceptions from the
        component handlers are logged and do not propagate.
        """
        if isinstance(stanza_obj, stanza.IQ):
            self._process_incoming_iq(stanza_obj)
        elif isinstance(stanza_obj, stanza.Message):
            self._logger.debug("incoming message: %r", stanza_obj)
            self._call_handler(self._component.handle_message, stanza_obj)
        elif isinstance(stanza_obj, stanza.Presence):
            self._logger.debug("incoming presence: %r", stanza_obj)
            self._call_handler(self._component.handle_presence, stanza_obj)
        else:
            self._logger.warning("unknown stanza dropped: %r", stanza_obj)

    def connection_lost(self, exc):
        """
        Cancel all pending IQ requests and running request handlers, and
        notify the component. Only the first call has an effect.
        """
        if self._closed:
            return
        self._closed = True
        self._logger.debug("connection lost (exc=%r), cancelling %d "
                           "pending requests",
                           exc, len(self._iq_response_map))
        self._stream.on_closing.disconnect(self._closing_token)
        self._iq_response_map.cancel_all()
        for task in list(self._iq_request_tasks):
            task.cancel()

        try:
            self._component.disconnected()
        except Exception:
            self._logger.exception("disconnected handler failed")
