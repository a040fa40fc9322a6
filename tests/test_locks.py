import asyncio
import unittest

from chat_wallet.locks import KeyedLock


class KeyedLockTests(unittest.IsolatedAsyncioTestCase):
    async def test_same_key_runs_in_arrival_order(self) -> None:
        locks = KeyedLock()
        order: list[int] = []

        async def worker(n: int) -> None:
            async with locks.hold("42"):
                await asyncio.sleep(0)
                order.append(n)

        await asyncio.gather(*(worker(n) for n in range(5)))
        self.assertEqual(order, [0, 1, 2, 3, 4])

    async def test_different_keys_do_not_block(self) -> None:
        locks = KeyedLock()
        inside_a = asyncio.Event()
        release_a = asyncio.Event()

        async def hold_a() -> None:
            async with locks.hold("a"):
                inside_a.set()
                await release_a.wait()

        task = asyncio.create_task(hold_a())
        await inside_a.wait()
        async with locks.hold("b"):
            pass  # would deadlock if "b" shared a's lock
        release_a.set()
        await task

    async def test_idle_locks_are_discarded(self) -> None:
        locks = KeyedLock()
        async with locks.hold("x"):
            self.assertEqual(len(locks), 1)
        self.assertEqual(len(locks), 0)
