########################################################################
# File name: __init__.py
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
Version information

There are two ways to obtain the imported version of the :mod:`aiocomponent`
package:

.. autodata:: __version__

.. data:: version

   Alias of :data:`__version__`.

.. autodata:: version_info

Overview

.. autosummary::
    :nosignatures:

    aiocomponent.Component
    aiocomponent.ComponentService
    aiocomponent.ComponentStream
    aiocomponent.StanzaDispatcher

"""
from ._version import version_info, __version__, version  # NOQA: F401

version_info = version_info

__version__ = __version__


# errors must be imported before structs
from .errors import (  # NOQA
    StreamError,
    StreamErrorCondition,
    XMPPError,
    XMPPAuthError,
    XMPPCancelError,
    XMPPContinueError,
    XMPPModifyError,
    XMPPWaitError,
    ErrorCondition,
    ConfigurationError,
)
from .structs import (  # NOQA: F401
    JID,
    jid,
    make_jid,
    PresenceShow,
    MessageType,
    PresenceType,
    IQType,
    ErrorType,
)
from .element import XMLElement, XMLBuilder  # NOQA: F401
from .stanza import Presence, IQ, Message  # NOQA: F401
from .protocol import ComponentStream  # NOQA: F401
from .dispatcher import StanzaDispatcher  # NOQA: F401
from .component import Component  # NOQA: F401
from .service import ComponentService  # NOQA: F401
