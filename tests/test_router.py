import asyncio
import unittest
from decimal import Decimal
from unittest.mock import AsyncMock

from chat_wallet.accounts import AccountStore
from chat_wallet.conversation import ConversationStateMachine, PromptStore
from chat_wallet.dispatcher import TransactionDispatcher
from chat_wallet.errors import GatewayUnavailable, LookupUnavailable
from chat_wallet.router import CommandRouter, parse_callback, parse_command
from chat_wallet.storage.models import EventKind, InboundEvent, TokenInfo

from tests.helpers import ALICE_DEST, FAKE_TX_HASH, DatabaseTestCase, FakeGateway, FakeLookup

PEPE = TokenInfo(symbol="PEPE", price_usd="0.0000012", contract_address="0x" + "cd" * 20)


class ParseCommandTests(unittest.TestCase):
    def test_known_commands(self) -> None:
        self.assertEqual(parse_command("1", "/start").kind, EventKind.START)
        self.assertEqual(parse_command("1", "/balance").kind, EventKind.BALANCE)
        self.assertEqual(parse_command("1", "/withdraw").kind, EventKind.WITHDRAW_INTENT)
        self.assertEqual(parse_command("1", "/help@WalletBot").kind, EventKind.HELP)

    def test_trade_carries_query(self) -> None:
        event = parse_command("1", "/trade  pepe coin ")
        self.assertEqual(event.kind, EventKind.TRADE_QUERY)
        self.assertEqual(event.payload, {"query": "pepe coin"})
        self.assertEqual(parse_command("1", "/trade").payload, {"query": ""})

    def test_non_commands(self) -> None:
        self.assertIsNone(parse_command("1", "hello"))
        self.assertIsNone(parse_command("1", "/unknown"))
        self.assertIsNone(parse_command("1", ""))


class ParseCallbackTests(unittest.TestCase):
    def test_buttons(self) -> None:
        self.assertEqual(parse_callback("1", "withdraw").kind, EventKind.WITHDRAW_INTENT)
        self.assertEqual(parse_callback("1", "cancel").kind, EventKind.CANCEL)

    def test_buy(self) -> None:
        event = parse_callback("1", f"buy_0.5_{PEPE.contract_address}")
        self.assertEqual(event.kind, EventKind.BUY_INTENT)
        self.assertEqual(event.payload, {"amount": "0.5", "contract_address": PEPE.contract_address})

    def test_malformed(self) -> None:
        self.assertIsNone(parse_callback("1", "buy_0.5"))
        self.assertIsNone(parse_callback("1", "buy__0xabc"))
        self.assertIsNone(parse_callback("1", "sell_1_0xabc"))


class CommandRouterTests(DatabaseTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.gateway = FakeGateway()
        self.lookup = FakeLookup(result=PEPE)
        self.accounts = AccountStore(self.db)
        dispatcher = TransactionDispatcher(self.gateway)
        self.conversation = ConversationStateMachine(
            PromptStore(self.db), self.accounts, self.gateway, dispatcher
        )
        self.router = CommandRouter(
            self.accounts,
            self.gateway,
            dispatcher,
            self.conversation,
            self.lookup,
            native_symbol="ETH",
            buy_amounts=["0.1", "0.5"],
        )

    async def test_start_creates_then_reuses_wallet(self) -> None:
        first = await self.router.handle_text("7", "/start")
        second = await self.router.handle_text("7", "/start")

        self.assertTrue(first.data["created"])
        self.assertFalse(second.data["created"])
        self.assertEqual(first.data["address"], second.data["address"])
        self.assertIn(first.data["address"], first.message)

    async def test_balance_without_wallet(self) -> None:
        reply = await self.router.handle_text("7", "/balance")
        self.assertFalse(reply.is_ok)
        self.assertEqual(reply.data["error"], "not_found")
        self.assertEqual(self.gateway.calls, [])
        self.assertIsNone(await self.accounts.get("7"))

    async def test_balance_of_fresh_wallet(self) -> None:
        await self.router.handle_text("7", "/start")
        reply = await self.router.handle_text("7", "/balance")
        self.assertTrue(reply.is_ok)
        self.assertEqual(Decimal(reply.data["balance"]), 0)
        self.assertEqual(reply.data["actions"][0]["callback_data"], "withdraw")

    async def test_balance_when_node_is_down(self) -> None:
        await self.router.handle_text("7", "/start")
        self.gateway.balance_error = GatewayUnavailable("connection refused")
        reply = await self.router.handle_text("7", "/balance")
        self.assertEqual(reply.data["error"], "gateway_unavailable")

    async def test_trade_lists_buy_buttons(self) -> None:
        reply = await self.router.handle_text("7", "/trade pepe")

        self.assertTrue(reply.is_ok)
        self.assertEqual(self.lookup.queries, ["pepe"])
        self.assertEqual(
            [a["callback_data"] for a in reply.data["actions"]],
            [f"buy_0.1_{PEPE.contract_address}", f"buy_0.5_{PEPE.contract_address}", "cancel"],
        )

    async def test_trade_not_found(self) -> None:
        self.lookup.result = None
        reply = await self.router.handle_text("7", "/trade nothing")
        self.assertEqual(reply.data["error"], "token_not_found")

    async def test_trade_lookup_unavailable(self) -> None:
        self.lookup.error = LookupUnavailable("HTTP 503")
        reply = await self.router.handle_text("7", "/trade pepe")
        self.assertEqual(reply.data["error"], "lookup_unavailable")

    async def test_trade_without_query(self) -> None:
        reply = await self.router.handle_text("7", "/trade")
        self.assertEqual(reply.data["error"], "usage")
        self.assertEqual(self.lookup.queries, [])

    async def test_buy_dispatches_to_contract(self) -> None:
        account = await self.accounts.resolve("7")
        event = parse_callback("7", f"buy_0.1_{PEPE.contract_address}")

        reply = await self.router.handle(event)

        self.assertTrue(reply.is_ok)
        self.assertEqual(reply.data["tx_hash"], FAKE_TX_HASH)
        [(_, sender, to, value)] = self.gateway.called("prepare_transfer")
        self.assertEqual((sender, to, value), (account.address, PEPE.contract_address, 10**17))

    async def test_buy_with_bad_contract(self) -> None:
        await self.accounts.resolve("7")
        reply = await self.router.handle(parse_callback("7", "buy_0.1_0xnothex"))
        self.assertFalse(reply.is_ok)
        self.assertEqual(reply.data["error"], "invalid_address")
        self.assertIn("Transaction Failed", reply.message)
        self.assertEqual(self.gateway.calls, [])

    async def test_buy_with_bad_amount(self) -> None:
        await self.accounts.resolve("7")
        event = InboundEvent(
            identity="7",
            kind=EventKind.BUY_INTENT,
            payload={"amount": "lots", "contract_address": PEPE.contract_address},
        )
        reply = await self.router.handle(event)
        self.assertEqual(reply.data["error"], "invalid_amount")

    async def test_withdraw_flow_through_router(self) -> None:
        account = await self.accounts.resolve("42")
        self.gateway.balances[account.address] = Decimal("2.0")

        prompt = await self.router.handle(parse_callback("42", "withdraw"))
        self.assertEqual(prompt.data["awaiting"], "withdraw_address")
        reply = await self.router.handle_text("42", ALICE_DEST)

        self.assertTrue(reply.is_ok)
        [(_, _, to, value)] = self.gateway.called("prepare_transfer")
        self.assertEqual((to, value), (ALICE_DEST, 2 * 10**18))

    async def test_pending_prompt_claims_the_next_command(self) -> None:
        await self.accounts.resolve("42")
        await self.router.handle_text("42", "/withdraw")

        reply = await self.router.handle_text("42", "/balance")
        self.assertEqual(reply.data["error"], "invalid_address")
        self.assertEqual(self.gateway.calls, [])

        after = await self.router.handle_text("42", "/balance")
        self.assertTrue(after.is_ok)

    async def test_withdraw_without_wallet(self) -> None:
        reply = await self.router.handle_text("42", "/withdraw")
        self.assertEqual(reply.data["error"], "not_found")

    async def test_plain_text_is_ignored(self) -> None:
        self.assertIsNone(await self.router.handle_text("7", "gm"))

    async def test_help_and_cancel(self) -> None:
        help_reply = await self.router.handle_text("7", "/help")
        self.assertIn("/trade", help_reply.message)
        cancel = await self.router.handle(parse_callback("7", "cancel"))
        self.assertTrue(cancel.is_ok)

    async def test_unexpected_error_becomes_internal_reply(self) -> None:
        self.lookup.search = AsyncMock(side_effect=RuntimeError("boom"))
        with self.assertLogs("chat_wallet.router", level="ERROR"):
            reply = await self.router.handle_text("7", "/trade pepe")
        self.assertEqual(reply.data["error"], "internal")

    async def test_same_identity_is_served_in_order(self) -> None:
        order: list[str] = []
        gate = asyncio.Event()

        async def slow_search(query: str):
            order.append(f"start:{query}")
            await gate.wait()
            order.append(f"end:{query}")
            return PEPE

        self.lookup.search = slow_search
        first = asyncio.create_task(self.router.handle_text("7", "/trade a"))
        second = asyncio.create_task(self.router.handle_text("7", "/trade b"))
        other = asyncio.create_task(self.router.handle_text("8", "/trade c"))
        for _ in range(200):
            if len(order) >= 2:
                break
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.05)

        self.assertCountEqual(order, ["start:a", "start:c"])
        gate.set()
        await asyncio.gather(first, second, other)
        self.assertLess(order.index("end:a"), order.index("start:b"))
