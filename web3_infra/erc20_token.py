"""Web3RewardToken — ERC-20 payouts signed and sent with ``AsyncWeb3``.

The rewarder treats a transfer as all-or-nothing: a reverted or
unconfirmed transaction raises ``TransferFailedError`` so the calling
hook rolls back its state change.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import structlog
from web3 import AsyncWeb3
from web3.types import TxReceipt

from rewarder.errors import TransferFailedError
from rewarder.interfaces import RewardToken

logger = structlog.get_logger("web3_infra.erc20_token")

ERC20_ABI = [
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


@dataclass
class Web3TokenConfig:
    """Transaction parameters for reward transfers."""

    chain_id: int = 250
    gas_limit_transfer: int = 100_000
    gas_price_multiplier_pct: int = 120  # 20% buffer over the node's estimate
    tx_confirmation_timeout_s: float = 120.0

    @classmethod
    def from_settings(cls, settings: Any = None) -> "Web3TokenConfig":
        if settings is None:
            from config.settings import settings

        return cls(
            chain_id=settings.CHAIN_ID,
            gas_limit_transfer=settings.GAS_LIMIT_TRANSFER,
            tx_confirmation_timeout_s=settings.TX_CONFIRMATION_TIMEOUT_SECONDS,
        )


class Web3RewardToken(RewardToken):
    """ERC-20 reward token held by the rewarder's signing account.

    Parameters
    ----------
    w3:
        Connected ``AsyncWeb3`` instance.
    token_address:
        ERC-20 contract address.
    sender_address:
        Account holding the reward balance.
    private_key:
        Key used to sign transfers from ``sender_address``.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        token_address: str,
        sender_address: str,
        private_key: str,
        config: Web3TokenConfig | None = None,
    ) -> None:
        self._w3 = w3
        self._address = AsyncWeb3.to_checksum_address(token_address)
        self._sender = AsyncWeb3.to_checksum_address(sender_address)
        self._private_key = private_key
        self._config = config or Web3TokenConfig()
        self._contract = w3.eth.contract(address=self._address, abi=ERC20_ABI)

    @property
    def address(self) -> str:
        return self._address

    async def balance_of(self, holder: str) -> int:
        return await self._contract.functions.balanceOf(
            AsyncWeb3.to_checksum_address(holder)
        ).call()

    async def transfer(self, recipient: str, amount: int) -> None:
        logger.info("erc20_token.transfer", recipient=recipient, amount=amount)

        tx = await self._contract.functions.transfer(
            AsyncWeb3.to_checksum_address(recipient),
            amount,
        ).build_transaction(await self._base_tx_params())

        await self._sign_and_send(tx)

    # ── Internals ────────────────────────────────────────────────

    async def _base_tx_params(self) -> dict[str, Any]:
        nonce = await self._w3.eth.get_transaction_count(self._sender)
        gas_price = await self._w3.eth.gas_price
        return {
            "from": self._sender,
            "nonce": nonce,
            "gas": self._config.gas_limit_transfer,
            "gasPrice": gas_price * self._config.gas_price_multiplier_pct // 100,
            "chainId": self._config.chain_id,
        }

    async def _sign_and_send(self, tx: dict[str, Any]) -> str:
        signed = self._w3.eth.account.sign_transaction(tx, self._private_key)
        tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        tx_hash_hex = tx_hash.hex()

        logger.info("erc20_token.tx_sent", tx_hash=tx_hash_hex)

        timeout = self._config.tx_confirmation_timeout_s
        try:
            receipt: TxReceipt = await asyncio.wait_for(
                self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout),
                timeout=timeout + 10,
            )
        except Exception as exc:
            logger.error("erc20_token.tx_timeout", tx_hash=tx_hash_hex, error=str(exc))
            raise TransferFailedError(
                f"Transfer confirmation failed: {exc}",
                tx_hash=tx_hash_hex,
            ) from exc

        if receipt.get("status", 0) != 1:
            logger.error(
                "erc20_token.tx_reverted",
                tx_hash=tx_hash_hex,
                gas_used=receipt.get("gasUsed", 0),
            )
            raise TransferFailedError("Transfer reverted on-chain", tx_hash=tx_hash_hex)

        logger.info(
            "erc20_token.tx_confirmed",
            tx_hash=tx_hash_hex,
            block=receipt.get("blockNumber", 0),
        )
        return tx_hash_hex
