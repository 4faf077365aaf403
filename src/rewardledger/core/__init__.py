"""
rewardledger core module.

Configuration, clock, exceptions and logging shared by the ledger
(``core.defi``) and its token collaborator (``core.contracts``).
"""

__all__ = []
