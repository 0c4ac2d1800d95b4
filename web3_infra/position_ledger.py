"""Web3PositionLedger — ownership checks against the on-chain staking ledger."""

from __future__ import annotations

import structlog
from web3 import AsyncWeb3

from rewarder.interfaces import PositionLedger

logger = structlog.get_logger("web3_infra.position_ledger")

LEDGER_ABI = [
    {
        "name": "isApprovedOrOwner",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "tokenId", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]


class Web3PositionLedger(PositionLedger):
    """Read-only view of the ledger contract; positions are NFTs keyed by id."""

    def __init__(self, w3: AsyncWeb3, ledger_address: str) -> None:
        self._address = AsyncWeb3.to_checksum_address(ledger_address)
        self._contract = w3.eth.contract(address=self._address, abi=LEDGER_ABI)

    @property
    def address(self) -> str:
        return self._address

    async def is_approved_or_owner(self, caller: str, position_id: int) -> bool:
        allowed = await self._contract.functions.isApprovedOrOwner(
            AsyncWeb3.to_checksum_address(caller),
            position_id,
        ).call()
        logger.debug(
            "position_ledger.ownership_checked",
            caller=caller,
            position_id=position_id,
            allowed=allowed,
        )
        return bool(allowed)
