"""Shared API model base and service-level responses."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for API bodies: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FeeInfo(CamelModel):
    """Public view of one configured fee."""

    amount: int = Field(..., description="Amount in minor units", examples=[1000])
    currency: str = Field(..., examples=["usd"])
    purpose: str = Field(..., examples=["registration_fee"])


class HealthResponse(CamelModel):
    """Service health and configuration summary. Never includes secrets."""

    status: str = "ok"
    version: str
    environment: str
    stripe_configured: bool
    fees: dict[str, FeeInfo] = Field(default_factory=dict)
