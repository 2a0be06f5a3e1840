########################################################################
# File name: statemachine.py
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
:mod:`~aiocomponent.statemachine` -- Forward-only state machine

.. autoclass:: OrderedStateMachine

.. autoclass:: OrderedStateSkipped

"""
import asyncio


class OrderedStateSkipped(ValueError):
    """
    Raised to a coroutine waiting for a state which the
    :class:`OrderedStateMachine` has moved past.

    .. attribute:: skipped_state

       The state which was waited for.
    """

    def __init__(self, skipped_state):
        super().__init__("state {} has been skipped".format(skipped_state))
        self.skipped_state = skipped_state


class OrderedStateMachine:
    """
    Holds the state of a protocol, which can only move forwards, and lets
    coroutines wait until a given state is entered.

    :param initial_state: The state to start in. States must support ``<``;
        :class:`TypeError` is raised otherwise.
    :param loop: Loop for the waiter futures; by default the running loop at
        the time a coroutine starts waiting.

    .. autoattribute:: state

    .. automethod:: wait_for
    """

    def __init__(self, initial_state, *, loop=None):
        try:
            initial_state < initial_state
        except (TypeError, AttributeError):
            raise TypeError("states must be ordered") from None

        self._state = initial_state
        self._waiters = []
        self.loop = loop

    @property
    def state(self):
        """
        The current state. Assigning a state wakes the coroutines waiting
        for it and fails those waiting for a state which has now been
        skipped. Assigning a state less than the current one raises
        :class:`ValueError`.
        """
        return self._state

    @state.setter
    def state(self, new_state):
        if new_state < self._state:
            raise ValueError("cannot rewind OrderedStateMachine "
                             "({} < {})".format(new_state, self._state))
        self._state = new_state

        waiters, self._waiters = self._waiters, []
        for wanted, fut in waiters:
            if fut.done():
                continue
            if wanted == new_state:
                fut.set_result(None)
            elif wanted < new_state:
                fut.set_exception(OrderedStateSkipped(wanted))
            else:
                self._waiters.append((wanted, fut))

    async def wait_for(self, state):
        """
        Return once `state` is entered; immediately if it is the current
        state.

        :raises OrderedStateSkipped: if the machine is past `state` or moves
            past it while waiting.
        """
        if self._state == state:
            return
        if state < self._state:
            raise OrderedStateSkipped(state)

        loop = self.loop or asyncio.get_running_loop()
        fut = loop.create_future()
        self._waiters.append((state, fut))
        await fut
