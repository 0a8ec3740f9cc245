# src/core/__init__.py
"""
Доменный слой (Core Domain).
Бизнес-логика заказов услуг; инфраструктура передаётся извне.
"""
