from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

# Product payloads carry their identity under any of these keys
IDENTITY_KEYS = ("product_id", "_id", "id")


class CartItem(BaseModel):
    product_id: str = Field(validation_alias=AliasChoices(*IDENTITY_KEYS))
    name: str = ""
    price: float = 0.0
    quantity: int = Field(default=1, ge=1)

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator("product_id", mode="before")
    @classmethod
    def _id_as_string(cls, value):
        return str(value) if value is not None else value

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class WishlistItem(BaseModel):
    product_id: str = Field(validation_alias=AliasChoices(*IDENTITY_KEYS))
    name: str = ""

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator("product_id", mode="before")
    @classmethod
    def _id_as_string(cls, value):
        return str(value) if value is not None else value


class MutationResult(BaseModel):
    success: bool
    message: str = ""
    in_wishlist: Optional[bool] = None


def product_fields(item: Any) -> Dict[str, Any]:
    """Plain dict view of a product given as a dict or a pydantic model."""
    if isinstance(item, BaseModel):
        return item.model_dump()
    if isinstance(item, dict):
        return dict(item)
    raise TypeError(f"Unsupported product type: {type(item).__name__}")


def product_identity(fields: Dict[str, Any]) -> Optional[str]:
    for key in IDENTITY_KEYS:
        value = fields.get(key)
        if value not in (None, ""):
            return str(value)
    return None
