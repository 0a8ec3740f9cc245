# src/services/__init__.py
"""
HTTP сервисы приложения.

Сервисы:
- orders_service: расчёт стоимости, создание и жизненный цикл заказов услуг,
  подготовка цены витрин
"""

__all__: list[str] = []
