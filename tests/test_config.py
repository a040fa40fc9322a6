import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from chat_wallet.config import (
    BotConfig,
    ChainConfig,
    get_root_dir,
    is_unresolved,
    load_config,
    save_config,
)


class ConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_defaults(self) -> None:
        config = BotConfig()
        self.assertEqual(config.chain.network, "ethereum")
        self.assertEqual(config.trading.buy_amounts, ["0.1", "0.5"])
        self.assertTrue(is_unresolved(config.telegram.token))

    def test_env_placeholders_are_expanded(self) -> None:
        path = self.tmp_path / "config.yaml"
        path.write_text(
            "name: Test Bot\n"
            "chain:\n"
            "  network: sepolia\n"
            "  rpc_url: ${TEST_RPC_URL}\n"
            "telegram:\n"
            "  token: ${TEST_TG_TOKEN}\n",
            encoding="utf-8",
        )
        env = {"TEST_RPC_URL": "https://rpc.example/abc", "TEST_TG_TOKEN": "123:xyz"}
        with patch.dict(os.environ, env):
            config = load_config(path)

        self.assertEqual(config.chain.rpc_url, "https://rpc.example/abc")
        self.assertEqual(config.telegram.token, "123:xyz")
        self.assertFalse(is_unresolved(config.telegram.token))

    def test_missing_env_var_stays_placeholder(self) -> None:
        path = self.tmp_path / "config.yaml"
        path.write_text("telegram:\n  token: ${SURELY_NOT_SET_ANYWHERE}\n", encoding="utf-8")
        with patch.dict(os.environ, {}, clear=True):
            config = load_config(path)
        self.assertEqual(config.telegram.token, "${SURELY_NOT_SET_ANYWHERE}")
        self.assertTrue(is_unresolved(config.telegram.token))

    def test_empty_file_gives_defaults(self) -> None:
        path = self.tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        self.assertEqual(load_config(path), BotConfig())

    def test_save_then_load(self) -> None:
        path = self.tmp_path / "nested" / "config.yaml"
        original = BotConfig(name="Saved", chain=ChainConfig(network="base"))
        save_config(original, path)

        self.assertNotIn("rpc_url", path.read_text(encoding="utf-8"))
        with patch.dict(os.environ):
            os.environ.pop("TELEGRAM_TOKEN", None)
            self.assertEqual(load_config(path), original)

    def test_root_dir(self) -> None:
        root = get_root_dir(self.tmp_path)
        self.assertEqual(root, self.tmp_path / ".chat-wallet")
        self.assertFalse(root.exists())
        get_root_dir(self.tmp_path, create=True)
        self.assertTrue(root.is_dir())
