"""Bonus rewarder — paper package.

In-memory token and ledger for simulation and testing.
"""

from .paper_ledger import PaperPositionLedger
from .paper_token import PaperRewardToken, TransferRecord

__all__ = [
    "PaperPositionLedger",
    "PaperRewardToken",
    "TransferRecord",
]
