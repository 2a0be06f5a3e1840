########################################################################
# File name: callbacks.py
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
:mod:`~aiocomponent.callbacks` -- Signals and response waiters

Signals
=======

A :class:`Signal` is declared on a class; each instance then gets its own
:class:`AdHocSignal` on attribute access, to which callables are connected:

.. code-block:: python

   class Stream:
       on_ready = callbacks.Signal()

   stream = Stream()
   token = stream.on_ready.connect(print)
   stream.on_ready("ready")   # prints "ready"
   stream.on_ready.disconnect(token)

.. autoclass:: Signal

.. autoclass:: AdHocSignal

Waiters
=======

.. autoclass:: TagDispatcher

.. autofunction:: log_spawned

"""

import asyncio
import collections
import functools
import inspect
import logging
import weakref


logger = logging.getLogger(__name__)


def log_spawned(logger, fut):
    """
    Done callback for tasks nobody awaits: log their outcome to `logger`.
    """
    try:
        result = fut.result()
    except asyncio.CancelledError:
        logger.debug("spawned task was cancelled")
    except Exception:
        logger.warning("spawned task raised exception", exc_info=True)
    else:
        if result is not None:
            logger.info("value returned by spawned task was ignored: %r",
                        result)


class TagDispatcher:
    """
    Futures waiting for a reply, keyed by a tag (the id of an IQ request).

    A future which is already done (typically because the waiting party
    cancelled it) counts as absent: a new future may take its tag and data
    for its tag is rejected.

    Once done, a future drops its tag by itself, so waiters which give up
    do not accumulate.

    .. automethod:: add_future

    .. automethod:: remove_future

    .. automethod:: unicast

    .. automethod:: unicast_error

    .. automethod:: cancel_all
    """

    def __init__(self):
        self._futures = {}

    def __contains__(self, tag):
        fut = self._futures.get(tag)
        return fut is not None and not fut.done()

    def __len__(self):
        return sum(1 for fut in self._futures.values() if not fut.done())

    def add_future(self, tag, fut):
        """
        Wait with `fut` for the reply to `tag`.

        :raises ValueError: if a pending future is registered for `tag`
            already.
        """
        if tag in self:
            raise ValueError("a future is already waiting for {!r}".format(
                tag
            ))
        self._futures[tag] = fut
        fut.add_done_callback(functools.partial(self._future_done, tag))

    def _future_done(self, tag, fut):
        if self._futures.get(tag) is fut:
            del self._futures[tag]

    def remove_future(self, tag):
        """
        Forget the future for `tag` without touching it.

        :raises KeyError: if nothing is registered for `tag`.
        """
        del self._futures[tag]

    def _pop_pending(self, tag):
        fut = self._futures.pop(tag)
        if fut.done():
            raise KeyError(tag)
        return fut

    def unicast(self, tag, data):
        """
        Resolve the future for `tag` with `data` and forget it.

        :raises KeyError: if no pending future is registered for `tag`.
        """
        self._pop_pending(tag).set_result(data)

    def unicast_error(self, tag, exc):
        """
        Fail the future for `tag` with `exc` and forget it.

        :raises KeyError: if no pending future is registered for `tag`.
        """
        self._pop_pending(tag).set_exception(exc)

    def cancel_all(self):
        """
        Cancel all pending futures and forget every tag.
        """
        futures = list(self._futures.values())
        self._futures.clear()
        for fut in futures:
            fut.cancel()


class AdHocSignal:
    """
    A list of callables which are called in connection order when the signal
    is fired. A callable which returns a true value is disconnected
    afterwards.

    .. automethod:: connect

    .. automethod:: disconnect

    .. automethod:: fire

    .. attribute:: STRONG

       Connection mode which keeps a strong reference to the callable. This
       is the default.

    .. attribute:: WEAK

       Connection mode which keeps only a weak reference to the callable
       (a :class:`weakref.WeakMethod` for bound methods). The connection is
       dropped once the referent is gone.
    """

    def __init__(self):
        super().__init__()
        self._connections = collections.OrderedDict()
        self.logger = logger

    @staticmethod
    def _check_callable(f):
        if not callable(f):
            raise TypeError("must be callable, got {!r}".format(f))

    @classmethod
    def STRONG(cls, f):
        cls._check_callable(f)
        return f

    @classmethod
    def WEAK(cls, f):
        cls._check_callable(f)
        if inspect.ismethod(f):
            ref = weakref.WeakMethod(f)
        else:
            ref = weakref.ref(f)

        def call_if_alive(*args, **kwargs):
            f = ref()
            if f is None:
                return True
            return f(*args, **kwargs)

        return call_if_alive

    def connect(self, f, mode=None):
        """
        Connect `f` using `mode` (:attr:`STRONG` if omitted) and return a
        token for :meth:`disconnect`.

        :raises TypeError: if `f` is not callable.
        """
        wrapped = (mode or self.STRONG)(f)
        token = object()
        self._connections[token] = wrapped
        return token

    def disconnect(self, token):
        """
        Remove the connection identified by `token`. Unknown tokens are
        ignored.
        """
        self._connections.pop(token, None)

    def fire(self, *args, **kwargs):
        """
        Call each connected callable with the given arguments. A callable
        which raises is logged and disconnected; the others still run.

        The signal object itself is callable as a shorthand.
        """
        for token, f in list(self._connections.items()):
            try:
                drop = f(*args, **kwargs)
            except Exception:
                self.logger.exception("listener %r of signal raised", f)
                drop = True
            if drop:
                self._connections.pop(token, None)

    __call__ = fire


class Signal:
    """
    Descriptor which hands out one :class:`AdHocSignal` per instance. The
    attribute can neither be assigned nor deleted.
    """

    def __init__(self, *, doc=None):
        super().__init__()
        self.__doc__ = doc
        self._instances = weakref.WeakKeyDictionary()

    def __get__(self, instance, owner):
        if instance is None:
            return self
        try:
            return self._instances[instance]
        except KeyError:
            signal = AdHocSignal()
            self._instances[instance] = signal
            return signal

    def __set__(self, instance, value):
        raise AttributeError("cannot override Signal attribute")

    def __delete__(self, instance):
        raise AttributeError("cannot override Signal attribute")
