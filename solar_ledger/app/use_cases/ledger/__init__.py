"""Credit ledger use cases"""
from .accumulate_credits import AccumulateCredits
from .consume_credits import ConsumeCredits
from .adjust_credits import AdjustCredits
from .get_balance import GetBalance
from .list_transactions import ListTransactions
from .verify_ledger import VerifyLedger
from .dtos import (
    AccumulateCommandDTO,
    ConsumeCommandDTO,
    AdjustCommandDTO,
    CreditTransactionResponseDTO,
    CreditBucketDTO,
    BalanceResponseDTO,
    ListTransactionsResponseDTO,
    LedgerDiscrepancyDTO,
    VerificationResultDTO,
)

__all__ = [
    "AccumulateCredits",
    "ConsumeCredits",
    "AdjustCredits",
    "GetBalance",
    "ListTransactions",
    "VerifyLedger",
    "AccumulateCommandDTO",
    "ConsumeCommandDTO",
    "AdjustCommandDTO",
    "CreditTransactionResponseDTO",
    "CreditBucketDTO",
    "BalanceResponseDTO",
    "ListTransactionsResponseDTO",
    "LedgerDiscrepancyDTO",
    "VerificationResultDTO",
]
