"""Domain model for the user management service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

USER_FIELDS = ("name", "email", "phone", "age", "address")


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


@dataclass(frozen=True)
class User:
    """Represents a user record stored in the users collection."""

    id: str
    name: str
    email: str
    created_at: datetime
    updated_at: datetime
    phone: Optional[str] = None
    age: Optional[int] = None
    address: Optional[str] = None

    def fields(self) -> Dict[str, Any]:
        """Return the mutable fields of the record."""

        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "age": self.age,
            "address": self.address,
        }

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id}
        payload.update(self.fields())
        payload["createdAt"] = _serialize_datetime(self.created_at)
        payload["updatedAt"] = _serialize_datetime(self.updated_at)
        return payload

    @staticmethod
    def from_payload(data: Mapping[str, Any]) -> "User":
        """Create a :class:`User` from an API response body."""

        try:
            identifier = data.get("id") or data["_id"]
            created = _parse_datetime(data["createdAt"])
            updated = _parse_datetime(data.get("updatedAt") or data["createdAt"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError("User payload is missing required fields") from exc

        age = data.get("age")
        return User(
            id=str(identifier),
            name=str(data.get("name") or ""),
            email=str(data.get("email") or ""),
            phone=data.get("phone") or None,
            age=int(age) if age is not None and age != "" else None,
            address=data.get("address") or None,
            created_at=created,
            updated_at=updated,
        )


@dataclass(frozen=True)
class Draft:
    """Unsaved form values, kept as text exactly as the user typed them."""

    name: str = ""
    email: str = ""
    phone: str = ""
    age: str = ""
    address: str = ""

    @staticmethod
    def from_user(user: User) -> "Draft":
        return Draft(
            name=user.name,
            email=user.email,
            phone=user.phone or "",
            age="" if user.age is None else str(user.age),
            address=user.address or "",
        )

    def with_field(self, name: str, value: str) -> "Draft":
        if name not in USER_FIELDS:
            raise ValueError(f"Unknown form field '{name}'")
        values = self.to_payload()
        values[name] = value
        return Draft(**values)

    def to_payload(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "age": self.age,
            "address": self.address,
        }

    def is_empty(self) -> bool:
        return not any(value.strip() for value in self.to_payload().values())


__all__ = ["Draft", "USER_FIELDS", "User"]
