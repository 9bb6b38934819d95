from __future__ import annotations

import asyncio
import os
import signal

import pytest

from collection_filter.interrupt import InterruptSignal


async def test_trigger_runs_each_handler_once():
    interrupt = InterruptSignal()
    calls: list[str] = []

    async def first() -> None:
        calls.append("first")

    async def second() -> None:
        calls.append("second")

    interrupt.subscribe(first)
    interrupt.subscribe(second)

    interrupt.trigger("migrating")
    interrupt.trigger("again")
    await interrupt.wait_handled()

    assert sorted(calls) == ["first", "second"]
    assert interrupt.triggered
    assert interrupt.reason == "migrating"


async def test_unsubscribed_handler_is_not_called():
    interrupt = InterruptSignal()
    calls: list[str] = []

    async def handler() -> None:
        calls.append("x")

    interrupt.subscribe(handler)
    interrupt.unsubscribe(handler)
    interrupt.trigger()
    await interrupt.wait_handled()

    assert calls == []


async def test_wait_handled_without_trigger_returns():
    await InterruptSignal().wait_handled()


async def test_handler_failure_is_reraised():
    interrupt = InterruptSignal()

    async def handler() -> None:
        raise RuntimeError("persist failed")

    interrupt.subscribe(handler)
    interrupt.trigger()

    with pytest.raises(RuntimeError, match="persist failed"):
        await interrupt.wait_handled()


async def test_install_triggers_on_posix_signal():
    interrupt = InterruptSignal()
    handled = asyncio.Event()

    async def handler() -> None:
        handled.set()

    interrupt.subscribe(handler)
    interrupt.install(signals=(signal.SIGUSR1,))
    try:
        os.kill(os.getpid(), signal.SIGUSR1)
        await asyncio.wait_for(handled.wait(), timeout=2)
    finally:
        interrupt.uninstall(signals=(signal.SIGUSR1,))

    assert interrupt.reason == "SIGUSR1"
