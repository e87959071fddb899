"""Response envelope models shared by every endpoint."""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Uniform success envelope.

    Attributes:
        status_code: Status reported inside the envelope
        data: Endpoint payload
        message: Human-readable outcome
        success: Derived from status_code (< 400)
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_code: int
    data: DataT
    message: str = "Success"
    success: bool = True

    @model_validator(mode="after")
    def derive_success(self) -> "ApiResponse":
        """Keep success consistent with status_code."""
        self.success = self.status_code < 400
        return self


class ErrorResponse(BaseModel):
    """Uniform error envelope. Carries no stack traces or internal ids."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_code: int
    message: str
    success: bool = False
    data: Optional[dict] = None
