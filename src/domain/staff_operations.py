# src/domain/staff_operations.py

from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class StaffOperationType(str, Enum):
    SELL = "SELL"
    CHECK = "CHECK"
    REFUND = "REFUND"
    MODIFY = "MODIFY"


class _Details(BaseModel):
    model_config = ConfigDict(frozen=True)


class SellDetails(_Details):
    type: Literal["SELL"] = "SELL"
    ticket_type: str
    seats: list[str]
    total_price: Decimal
    payment_method: str


class CheckDetails(_Details):
    type: Literal["CHECK"] = "CHECK"
    ticket_status_at_check: str
    seats: list[str]


class RefundDetails(_Details):
    type: Literal["REFUND"] = "REFUND"
    reason: str
    refund_amount: Decimal
    seats: list[str]


class ModifyDetails(_Details):
    type: Literal["MODIFY"] = "MODIFY"
    from_seats: list[str]
    to_seats: list[str]
    price_difference: Decimal


OperationDetails = Annotated[
    Union[SellDetails, CheckDetails, RefundDetails, ModifyDetails],
    Field(discriminator="type"),
]

_details_adapter: TypeAdapter[OperationDetails] = TypeAdapter(OperationDetails)


def dump_details(details: OperationDetails) -> dict:
    return details.model_dump(mode="json")


def load_details(payload: dict) -> OperationDetails:
    return _details_adapter.validate_python(payload)


def operation_type(details: OperationDetails) -> StaffOperationType:
    return StaffOperationType(details.type)
