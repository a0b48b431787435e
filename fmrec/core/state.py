"""
Recording session state and state-change broadcast.

A SessionState tracks one recorder id: its current RecordState and the
output path of the active recording. Every actual transition is pushed,
synchronously and in subscription order, to the subscriptions of the
session's StateChannel. Re-entering the current state publishes nothing.

Subscriptions are replay-free async iterators:

    sub = session.subscribe()
    async for state in sub:
        ...
    sub.close()

Closing the last subscription tears the channel down; the next subscribe()
opens a fresh one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from fmrec.core import RecordState

__all__ = ["StateSubscription", "StateChannel", "SessionState"]

_END = object()


class StateSubscription:
    """One listener on a StateChannel. Receives only transitions published after it was created."""

    def __init__(self, channel: StateChannel) -> None:
        self._channel = channel
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _push(self, state: RecordState) -> None:
        if not self._closed:
            self._queue.put_nowait(state)

    def _end(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_END)

    def pending(self) -> list[RecordState]:
        """Return (and consume) the states already delivered but not yet read."""
        states: list[RecordState] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _END:
                # Keep the end marker so iteration still terminates.
                self._queue.put_nowait(_END)
                break
            states.append(item)  # type: ignore[arg-type]
        return states

    def close(self) -> None:
        """Stop listening. States still queued can be read before iteration ends."""
        if self._closed:
            return
        self._end()
        self._channel._remove(self)

    def __aiter__(self) -> StateSubscription:
        return self

    async def __anext__(self) -> RecordState:
        item = await self._queue.get()
        if item is _END:
            self._queue.put_nowait(_END)
            raise StopAsyncIteration
        return item  # type: ignore[return-value]

    def __enter__(self) -> StateSubscription:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class StateChannel:
    """Multi-subscriber broadcast of RecordState transitions."""

    def __init__(self, on_closed: Callable[[StateChannel], None] | None = None) -> None:
        self._subscribers: list[StateSubscription] = []
        self._on_closed = on_closed
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> StateSubscription:
        if self._closed:
            raise RuntimeError("State channel is closed.")
        sub = StateSubscription(self)
        self._subscribers.append(sub)
        return sub

    def publish(self, state: RecordState) -> None:
        for sub in list(self._subscribers):
            sub._push(state)

    def _remove(self, sub: StateSubscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)
        if not self._subscribers:
            self.close()

    def close(self) -> None:
        """End every subscription and notify the owner."""
        if self._closed:
            return
        self._closed = True
        subscribers, self._subscribers = self._subscribers, []
        for sub in subscribers:
            sub._end()
        if self._on_closed is not None:
            self._on_closed(self)


class SessionState:
    """
    State of one recorder id.

    Invariant: output_path is set iff state is RECORD or PAUSE. Use begin()
    and end() for the transitions that also move the output path.
    """

    def __init__(self, recorder_id: str) -> None:
        self.recorder_id = recorder_id
        self._state = RecordState.STOP
        self._output_path: str | None = None
        self._channel: StateChannel | None = None

    @property
    def state(self) -> RecordState:
        return self._state

    @property
    def output_path(self) -> str | None:
        return self._output_path

    @property
    def channel(self) -> StateChannel | None:
        return self._channel

    def set_state(self, state: RecordState) -> bool:
        """
        Move to `state` and notify subscribers.

        Returns:
            True if a transition happened, False if already in `state`.
        """
        if state == self._state:
            return False
        previous, self._state = self._state, state
        logging.info(
            "Recorder %s: %s -> %s", self.recorder_id, previous.value, state.value
        )
        if self._channel is not None:
            self._channel.publish(state)
        return True

    def begin(self, output_path: str) -> None:
        """Record `output_path` as the active output and enter RECORD."""
        self._output_path = output_path
        self.set_state(RecordState.RECORD)

    def end(self) -> str | None:
        """Clear the active output, enter STOP and return the previous path."""
        path, self._output_path = self._output_path, None
        self.set_state(RecordState.STOP)
        return path

    def subscribe(self) -> StateSubscription:
        """Open a replay-free subscription to future transitions."""
        if self._channel is None:
            self._channel = StateChannel(on_closed=self._channel_closed)
        return self._channel.subscribe()

    def close(self) -> None:
        """End all subscriptions of this session."""
        if self._channel is not None:
            self._channel.close()

    def _channel_closed(self, channel: StateChannel) -> None:
        if self._channel is channel:
            self._channel = None
