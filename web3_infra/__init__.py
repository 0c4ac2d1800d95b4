"""Bonus rewarder — web3_infra package.

EVM adapters for the rewarder's collaborators:
- Web3RewardToken: ERC-20 payouts from the rewarder account
- Web3PositionLedger: ``isApprovedOrOwner`` view on the staking ledger
"""

from .erc20_token import Web3RewardToken, Web3TokenConfig
from .position_ledger import Web3PositionLedger

__all__ = [
    "Web3PositionLedger",
    "Web3RewardToken",
    "Web3TokenConfig",
]
