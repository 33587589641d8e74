from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

__all__ = ["Security"]


class Security(BaseModel):
    """One holding of a security in an account, as the account store keeps it.

    ``collateral_form`` is the asset class the rulesets are keyed by. The
    valuation fields (``value_percentage``, ``mtm``, ``effective_value_changed``,
    ``total_value``) are rewritten by settlement with the figures the
    allocation run computed.
    """

    model_config = ConfigDict(populate_by_name=True)

    security_id: str = Field(alias="securityId")
    account_number: str = Field(alias="accountNumber")
    security_name: str = Field("", alias="securityName")
    security_quantity: str = Field("0", alias="securityQuantity")
    security_type: str = Field("", alias="securityType")
    collateral_form: str = Field(alias="collateralForm")
    total_value: str = Field("", alias="totalValue")
    value_percentage: str = Field("", alias="valuePercentage")
    mtm: str = ""
    effective_percentage: str = Field("", alias="effectivePercentage")
    effective_value_changed: str = Field("", alias="effectiveValueChanged")
    currency: str = ""

    def as_payload(self) -> dict:
        return self.model_dump(by_alias=True)
