"""WalletService - owns every collaborator for one bot deployment."""

from __future__ import annotations

import logging
from pathlib import Path

from chat_wallet.accounts import AccountStore
from chat_wallet.config import BotConfig, get_root_dir, load_config, save_config
from chat_wallet.conversation import ConversationStateMachine, PromptStore
from chat_wallet.dispatcher import TransactionDispatcher
from chat_wallet.metadata import TokenLookup
from chat_wallet.router import CommandRouter
from chat_wallet.storage.database import Database, get_database
from chat_wallet.wallet.chains import get_chain
from chat_wallet.wallet.gateway import ChainGateway
from chat_wallet.wallet.keys import KeyCodec, KeystoreKeyCodec, PlaintextKeyCodec

logger = logging.getLogger("chat_wallet.service")


class WalletService:
    """The custodial wallet bot, wired together.

    Collaborators are created here and passed explicitly to whatever needs
    them; nothing reaches for module-level handles.
    """

    def __init__(
        self,
        config: BotConfig,
        root_dir: Path,
        db: Database,
        gateway: ChainGateway | None = None,
        lookup: TokenLookup | None = None,
    ):
        self.config = config
        self.root_dir = root_dir
        self.db = db
        self.chain = get_chain(config.chain.network)

        self.gateway = gateway or ChainGateway(self.chain, config.chain.rpc_url)
        self.lookup = lookup or TokenLookup(
            base_url=config.trading.lookup_url,
            timeout=config.trading.lookup_timeout,
        )
        self.accounts = AccountStore(db, _key_codec(config))
        self.prompts = PromptStore(db)
        self.dispatcher = TransactionDispatcher(self.gateway)
        self.conversation = ConversationStateMachine(
            self.prompts, self.accounts, self.gateway, self.dispatcher
        )
        self.router = CommandRouter(
            self.accounts,
            self.gateway,
            self.dispatcher,
            self.conversation,
            self.lookup,
            native_symbol=self.chain.native_symbol,
            buy_amounts=config.trading.buy_amounts,
        )

    @classmethod
    async def load(cls, base_path: Path | None = None) -> WalletService:
        """Load an existing deployment from a .chat-wallet directory."""
        root_dir = get_root_dir(base_path)
        config_path = root_dir / "config.yaml"

        if not config_path.exists():
            raise FileNotFoundError(
                f"No bot found at {root_dir}. Run 'chat-wallet init' first."
            )

        config = load_config(config_path)
        db = get_database(root_dir, config.storage.db_file)
        await db.connect()
        logger.info(f"Loaded '{config.name}' on {config.chain.network}")
        return cls(config=config, root_dir=root_dir, db=db)

    @classmethod
    async def init(
        cls,
        base_path: Path | None = None,
        config: BotConfig | None = None,
    ) -> WalletService:
        """Create a new deployment directory with config and database."""
        root_dir = get_root_dir(base_path, create=True)
        config_path = root_dir / "config.yaml"
        if config_path.exists():
            raise FileExistsError(f"A bot is already initialized at {root_dir}.")

        config = config or BotConfig()
        get_chain(config.chain.network)
        save_config(config, config_path)

        db = get_database(root_dir, config.storage.db_file)
        await db.connect()
        return cls(config=config, root_dir=root_dir, db=db)

    async def shutdown(self) -> None:
        """Release the database connection."""
        await self.db.close()


def _key_codec(config: BotConfig) -> KeyCodec:
    if config.storage.key_password:
        return KeystoreKeyCodec(config.storage.key_password)
    logger.warning("Private keys are stored unencrypted (storage.key_password not set)")
    return PlaintextKeyCodec()
