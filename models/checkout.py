from pydantic import BaseModel, ConfigDict, Field


class CheckoutRequestDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contact_email: str | None = Field(default=None, alias="contactEmail")
    success_url: str | None = Field(default=None, alias="successUrl")
    cancel_url: str | None = Field(default=None, alias="cancelUrl")


class CheckoutResultDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_session_id: str = Field(alias="paymentSessionId")
    payment_session_url: str | None = Field(default=None, alias="paymentSessionUrl")
    order_id: int = Field(alias="orderId")
