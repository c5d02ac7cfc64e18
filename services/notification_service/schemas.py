from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

Priority = Literal["low", "medium", "high", "urgent"]


class Notification(BaseModel):
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    title: str = ""
    message: str = ""
    type: Optional[str] = None
    priority: Priority = "medium"
    is_read: bool = Field(default=False, validation_alias=AliasChoices("isRead", "is_read"))
    data: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value):
        return str(value) if value is not None else value

    @property
    def target_path(self) -> Optional[str]:
        """Where a click on this notification should lead."""
        if self.data.get("orderId"):
            return f"/orders/{self.data['orderId']}"
        if self.data.get("productId"):
            return f"/products/{self.data['productId']}"
        return None


class NotificationPage(BaseModel):
    notifications: List[Notification] = []
    total: int = 0
    page: int = 1
    pages: int = 1

    class Config:
        extra = "allow"
