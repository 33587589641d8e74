"""Deal and transaction records as the deal store hands them over.

Amounts travel as decimal strings; the engine parses them where it needs
arithmetic and writes strings back.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "AllocationStatus",
    "Deal",
    "Transaction",
    "TransactionStatus",
]


class AllocationStatus(str, Enum):
    IN_PROGRESS = "Allocation in progress"
    PENDING_INSUFFICIENT = "Pending due to insufficient collateral"
    READY = "Ready for Allocation"
    FAILED = "Allocation Failed"
    SUCCESSFUL = "Allocation Successful"


class TransactionStatus(str, Enum):
    PENDING = "Pending"
    MATCHED = "Matched"
    READY = "Ready"
    FAILED = "Failed"
    COMPLETED = "Completed"


class Deal(BaseModel):
    """Static reference data for a pledger/pledgee agreement."""

    model_config = ConfigDict(populate_by_name=True)

    deal_id: str = Field(alias="dealId")
    pledger: str
    pledgee: str
    # display / audit only
    max_value: str = Field("", alias="maxValue")
    total_value_longbox_account: str = Field("", alias="totalValueLongBoxAccount")
    total_value_segregated_account: str = Field("", alias="totalValueSegregatedAccount")
    issue_date: str = Field("", alias="issueDate")
    last_successful_allocation_date: str = Field("", alias="lastSuccessfulAllocationDate")
    transactions: str = ""


class Transaction(BaseModel):
    """A collateral obligation between the deal's two parties."""

    model_config = ConfigDict(populate_by_name=True)

    transaction_id: str = Field(alias="transactionId")
    transaction_date: str = Field("", alias="transactionDate")
    deal_id: str = Field(alias="dealId")
    pledger: str
    pledgee: str
    rqv: str
    currency: str
    currency_conversion_rate: str = Field("", alias="currencyConversionRate")
    margin_call_date: str = Field("", alias="marginCallDate")
    allocation_status: str = Field("", alias="allocationStatus")
    transaction_status: str = Field("", alias="transactionStatus")

    def with_status(
        self,
        allocation_status: AllocationStatus,
        transaction_status: TransactionStatus,
        *,
        conversion_rate: str | None = None,
    ) -> "Transaction":
        update = {
            "allocation_status": allocation_status.value,
            "transaction_status": transaction_status.value,
        }
        if conversion_rate is not None:
            update["currency_conversion_rate"] = conversion_rate
        return self.model_copy(update=update)
