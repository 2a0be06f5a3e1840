########################################################################
# File name: testutils.py
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
Helpers for testing aiocomponent code: a scripted transport which checks the
exact bytes a protocol writes, and small utilities to run coroutines with a
timeout and to observe signals.
"""
import asyncio
import os
import unittest
import unittest.mock

from . import callbacks


TIMEOUT_FACTOR = float(os.environ.get("AIOCOMPONENT_TIMEOUT_FACTOR", "1"))
if os.environ.get("CI") == "true":
    TIMEOUT_FACTOR *= 4


def get_timeout(base):
    return base * TIMEOUT_FACTOR


DEFAULT_TIMEOUT = get_timeout(1.0)


def run_coroutine(coroutine, timeout=DEFAULT_TIMEOUT, *, loop):
    return loop.run_until_complete(
        asyncio.wait_for(coroutine, timeout=timeout)
    )


def make_listener(instance):
    """
    Return a :class:`unittest.mock.Mock` with one child per
    :class:`aiocomponent.callbacks.Signal` of `instance`, named like the
    signal and connected to it.
    """
    result = unittest.mock.Mock([])
    names = {
        name
        for type_ in type(instance).__mro__
        for name, value in type_.__dict__.items()
        if isinstance(value, callbacks.Signal)
    }
    for name in names:
        cb = unittest.mock.Mock()
        cb.return_value = None
        setattr(result, name, cb)
        getattr(instance, name).connect(cb)
    return result


class _Expectation:
    def __init__(self, *, response=None):
        self.response = response

    def __repr__(self):
        return "{}(response={!r})".format(type(self).__name__, self.response)


class _Stimulus:
    def __repr__(self):
        return "{}()".format(type(self).__name__)


class TransportMock(asyncio.ReadTransport, asyncio.WriteTransport):
    """
    A transport which checks what a protocol does against a script.

    The script is a list of expectations: :class:`Write` (whose bytes may be
    produced by several :meth:`write` calls), :class:`WriteEof`,
    :class:`Close` and :class:`Abort`. Once an expectation is met, its
    `response` is applied to the protocol. A response is a stimulus
    (:class:`Receive`, :class:`ReceiveEof` or :class:`LoseConnection`), a
    list of them, or :data:`None`.
    """

    class Write(_Expectation):
        def __init__(self, data, *, response=None):
            super().__init__(response=response)
            self.data = data

        def __repr__(self):
            return "Write({!r}, response={!r})".format(self.data,
                                                       self.response)

    class WriteEof(_Expectation):
        pass

    class Close(_Expectation):
        pass

    class Abort(_Expectation):
        pass

    class Receive(_Stimulus):
        def __init__(self, data):
            self.data = data

        def __repr__(self):
            return "Receive({!r})".format(self.data)

        def do(self, transport, protocol):
            protocol.data_received(self.data)

    class ReceiveEof(_Stimulus):
        def do(self, transport, protocol):
            protocol.eof_received()

    class LoseConnection(_Stimulus):
        def __init__(self, exc=None):
            self.exc = exc

        def do(self, transport, protocol):
            transport._connected = False
            protocol.connection_lost(self.exc)

    def __init__(self, tester, protocol, *, loop):
        super().__init__()
        self._tester = tester
        self._protocol = protocol
        self._loop = loop
        self._calls = asyncio.Queue()
        self._script = []
        self._written = bytearray()
        self._connected = False

    def _history(self):
        tail = bytes(self._written[-100:])
        skipped = len(self._written) - len(tail)
        if skipped:
            return " (written before: [{} bytes] {!r})".format(skipped, tail)
        return " (written before: {!r})".format(tail)

    def _apply(self, response):
        if response is None:
            return
        if isinstance(response, (list, tuple)):
            for item in response:
                self._apply(item)
            return
        if not isinstance(response, _Stimulus):
            raise RuntimeError(
                "bad test script: unknown response {!r}".format(response)
            )
        response.do(self, self._protocol)

    def _next(self, what, expectation_cls):
        self._tester.assertTrue(
            self._script,
            "unexpected {} (script exhausted){}".format(what,
                                                        self._history()),
        )
        head = self._script[0]
        self._tester.assertIsInstance(
            head, expectation_cls,
            "unexpected {}, expected {!r}{}".format(what, head,
                                                    self._history()),
        )
        return head

    def _check_write(self, data):
        head = self._next("write", self.Write)
        self._tester.assertEqual(
            head.data[:len(data)],
            data,
            "written data does not match the script" + self._history()
        )
        self._written += data
        rest = head.data[len(data):]
        if rest:
            self._script[0] = self.Write(rest, response=head.response)
            return
        del self._script[0]
        self._apply(head.response)

    def _check_simple(self, what, expectation_cls):
        head = self._next(what, expectation_cls)
        del self._script[0]
        self._apply(head.response)

    async def run_test(self, actions, stimulus=None, partial=False):
        """
        Connect the protocol (unless connected already), apply `stimulus`
        and check the calls of the protocol against `actions` until the
        script is exhausted and no calls are left. Unless `partial` is true,
        the connection is lost afterwards.

        Waits forever if the protocol never performs an expected action;
        wrap the call in :func:`run_coroutine` for a timeout.
        """
        self._script = list(actions)
        if not self._connected:
            self._connected = True
            self._protocol.connection_made(self)
        if isinstance(stimulus, bytes):
            stimulus = self.Receive(stimulus)
        self._apply(stimulus)

        while self._script or not self._calls.empty():
            name, *args = await self._calls.get()
            if name == "write":
                self._check_write(*args)
            elif name == "write_eof":
                self._check_simple(name, self.WriteEof)
            elif name == "close":
                self._check_simple(name, self.Close)
            else:
                self._check_simple(name, self.Abort)

        if self._connected and not partial:
            self.LoseConnection().do(self, self._protocol)

    def can_write_eof(self):
        return True

    def write(self, data):
        self._calls.put_nowait(("write", bytes(data)))

    def write_eof(self):
        self._calls.put_nowait(("write_eof",))

    def close(self):
        self._calls.put_nowait(("close",))

    def abort(self):
        self._calls.put_nowait(("abort",))
