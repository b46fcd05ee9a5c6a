from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from models.cartItem import CartLine


class CartTotalsDTO(BaseModel):
    subtotal: int = 0
    tax: int = 0
    total: int = 0
    item_count: int = 0


class CartDTO(CartTotalsDTO):
    """Cart document as stored under cart:{session_key} and returned by the cart API."""
    # lines may be passed as model instances; the tagged union reads item_type off them
    model_config = ConfigDict(from_attributes=True)

    session_key: str
    items: list[CartLine] = Field(default_factory=list)
    updated_at: datetime | None = None

    @property
    def is_empty(self) -> bool:
        return len(self.items) == 0


class CartValidationResultDTO(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    cart: CartDTO | None = None
