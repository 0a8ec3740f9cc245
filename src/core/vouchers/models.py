# src/core/vouchers/models.py
"""
Модели ваучеров (скидочных кодов).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.common.constants import VoucherType


class Voucher(BaseModel):
    """Скидочный код с ограничениями по времени, количеству и ролям."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    type: VoucherType
    discount: Decimal
    max_uses: Optional[int] = None
    max_uses_per_user: Optional[int] = None
    valid_from: Optional[datetime] = None
    valid_until: datetime
    is_active: bool = True
    role_ids: list[str] = Field(default_factory=list)

    @property
    def is_role_restricted(self) -> bool:
        return bool(self.role_ids)
