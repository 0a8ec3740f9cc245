# src/core/users/models.py
"""
Модели пользователей, их ролей и адресов доставки.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserAccount(BaseModel):
    """Пользователь маркетплейса с названием роли."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    role_id: Optional[str] = None
    role_name: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None

    @property
    def has_role(self) -> bool:
        return self.role_id is not None


class CustomerAddress(BaseModel):
    """Адрес доставки клиента."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None
