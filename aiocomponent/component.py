########################################################################
# File name: component.py
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
:mod:`~aiocomponent.component` --- Base class for components

Applications implement a component by subclassing :class:`Component` and
overriding the handlers they are interested in:

.. code-block:: python

   class EchoComponent(aiocomponent.Component):
       def get_name(self):
           return "Echo"

       def get_description(self):
           return "Sends every message back"

       def handle_message(self, msg):
           reply = msg.make_reply()
           reply.body = msg.body
           self.send(reply)

The component is then run by a :class:`~.service.ComponentService`.

.. autoclass:: Component

"""
import abc
import asyncio
import logging

from . import structs
from .utils import namespaces


logger = logging.getLogger(__name__)


class Component(metaclass=abc.ABCMeta):
    """
    Base class for components.

    Service discovery metadata:

    .. automethod:: get_name

    .. automethod:: get_description

    Handlers (called by the runtime, in the order the stanzas arrive):

    .. automethod:: handle_message

    .. automethod:: handle_presence

    .. automethod:: handle_iq

    Lifecycle hooks:

    .. automethod:: connected

    .. automethod:: will_disconnect

    .. automethod:: disconnected

    Sending:

    .. automethod:: send

    .. automethod:: send_iq

    .. autoattribute:: jid

    .. autoattribute:: server_jid
    """

    def __init__(self):
        super().__init__()
        self._dispatcher = None
        self._jid = None
        self._server_jid = None

    @abc.abstractmethod
    def get_name(self):
        """
        Return the human-readable name of the component.
        """

    @abc.abstractmethod
    def get_description(self):
        """
        Return a short description of the component.
        """

    @property
    def jid(self):
        """
        The address of the component, set when it is attached to a running
        service.
        """
        return self._jid

    @property
    def server_jid(self):
        """
        The address of the server the component is connected to.
        """
        return self._server_jid

    def attach(self, dispatcher, jid, server_jid):
        """
        Bind the component to `dispatcher`. Called by the service; do not
        call this directly.
        """
        self._dispatcher = dispatcher
        self._jid = jid
        self._server_jid = server_jid

    def detach(self):
        self._dispatcher = None

    def handle_message(self, msg):
        """
        Called with every :class:`~.stanza.Message` received. The default
        implementation does nothing.
        """

    def handle_presence(self, pres):
        """
        Called with every :class:`~.stanza.Presence` received. The default
        implementation does nothing.
        """

    def handle_iq(self, iq):
        """
        Called with every IQ request (``get`` or ``set``). Responses are
        handled by the runtime.

        Return the response :class:`~.stanza.IQ`, raise an
        :class:`~.errors.XMPPError` to answer with an error, or return an
        awaitable resolving to either. Returning :data:`None` makes the
        runtime answer with ``feature-not-implemented``.

        The default implementation answers service discovery info requests
        (:xep:`30`) with the identity ``component/generic`` named by
        :meth:`get_name` and returns :data:`None` otherwise.
        """
        if iq.type_ == structs.IQType.GET and \
                iq.get_query(namespaces.xep0030_info) is not None:
            reply = iq.make_reply()
            query = reply.add_query(namespaces.xep0030_info)
            identity = query.add_child("identity", namespaces.xep0030_info)
            identity.set_attribute("category", "component")
            identity.set_attribute("type", "generic")
            identity.set_attribute("name", self.get_name())
            return reply
        return None

    def connected(self):
        """
        Called when the handshake has completed and stanzas can be sent.
        """
        logger.debug("Connected")

    def will_disconnect(self):
        """
        Called before the component disconnects during a clean exit. Stanzas
        can still be sent. This might never be called.
        """
        logger.debug("Will disconnect")

    def disconnected(self):
        """
        Called when the component has been disconnected. No stanzas can be
        sent at this point.
        """
        logger.debug("Disconnected")

    def send(self, stanza_obj):
        """
        Send a stanza. If the component is not connected, a warning is
        logged and the stanza is dropped.
        """
        if self._dispatcher is None:
            logger.warning("Disconnected, can't send stanza: %r", stanza_obj)
            return False
        return self._dispatcher.send(stanza_obj)

    def send_iq(self, iq):
        """
        Send an IQ request and return an :class:`asyncio.Future` for the
        response. See :meth:`.StanzaDispatcher.send_iq`.
        """
        if self._dispatcher is None:
            if not iq.is_request:
                raise ValueError("send_iq requires a get or set IQ")
            logger.warning("Disconnected, can't send stanza: %r", iq)
            fut = asyncio.get_running_loop().create_future()
            fut.cancel()
            return fut
        return self._dispatcher.send_iq(iq)
