"""
Typed record helpers.

The store itself works with plain dict documents. These dataclasses
give callers a typed way to build documents with a client-generated
id and creation timestamp.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .id_utils import new_record_id, utc_timestamp


@dataclass
class Business:
    """A business that owns articles."""

    id: str
    name: str
    created_at: str | None = field(default=None)

    @classmethod
    def create(cls, name: str) -> Business:
        """Build a new business with a fresh id and timestamp."""
        return cls(id=new_record_id(), name=name, created_at=utc_timestamp())

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.created_at is not None:
            data["createdAt"] = self.created_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Business:
        return cls(id=data["id"], name=data["name"], created_at=data.get("createdAt"))


@dataclass
class Article:
    """An article sold by a business.

    ``business_id`` is a plain reference. Deleting the business leaves
    the article in place with a dangling reference.
    """

    id: str
    name: str
    qty: int
    selling_price: float
    business_id: str
    created_at: str | None = field(default=None)

    @classmethod
    def create(cls, name: str, qty: int, selling_price: float, business_id: str) -> Article:
        """Build a new article with a fresh id and timestamp."""
        return cls(
            id=new_record_id(),
            name=name,
            qty=qty,
            selling_price=selling_price,
            business_id=business_id,
            created_at=utc_timestamp(),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "qty": self.qty,
            "selling_price": self.selling_price,
            "business_id": self.business_id,
        }
        if self.created_at is not None:
            data["createdAt"] = self.created_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Article:
        return cls(
            id=data["id"],
            name=data["name"],
            qty=data["qty"],
            selling_price=data["selling_price"],
            business_id=data["business_id"],
            created_at=data.get("createdAt"),
        )
