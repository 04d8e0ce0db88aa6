"""Ledger core: record store, transfer codec, chronological replay."""

from finledger.ledger.balances import (
    BalanceSnapshot,
    ReplayStep,
    chronological,
    compute_balances,
    replay,
)
from finledger.ledger.ids import IdGenerator
from finledger.ledger.store import RecordStore
from finledger.ledger.transfers import (
    Reconstruction,
    index_transfers,
    integrity_issues,
    make_deposit,
    make_transfer,
    make_withdrawal,
    reconstruct,
)

__all__ = [
    "BalanceSnapshot",
    "IdGenerator",
    "Reconstruction",
    "RecordStore",
    "ReplayStep",
    "chronological",
    "compute_balances",
    "index_transfers",
    "integrity_issues",
    "make_deposit",
    "make_transfer",
    "make_withdrawal",
    "reconstruct",
    "replay",
]
