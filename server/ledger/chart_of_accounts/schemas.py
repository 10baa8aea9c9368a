from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


AccountType = Literal["asset", "liability", "revenue", "expense"]


class ChartAccountBase(BaseModel):
    code: str = Field(..., min_length=3, max_length=3)
    analytic: str = Field("", max_length=6)
    name: str = Field(..., min_length=1, max_length=200)
    type: AccountType
    is_tax_relevant: bool = True
    is_off_balance: bool = False
    is_active: bool = True


class ChartAccountCreate(ChartAccountBase):
    pass


class ChartAccountUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=3, max_length=3)
    analytic: Optional[str] = Field(None, max_length=6)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[AccountType] = None
    is_tax_relevant: Optional[bool] = None
    is_off_balance: Optional[bool] = None
    is_active: Optional[bool] = None


class ChartAccountResponse(BaseModel):
    id: int
    code: str
    analytic: str
    full_code: str
    name: str
    type: str
    is_tax_relevant: bool
    is_off_balance: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AccountLookupResponse(BaseModel):
    found: bool
    label: str
    account: Optional[ChartAccountResponse] = None


class ChartSeedResponse(BaseModel):
    inserted: int
    updated: int
