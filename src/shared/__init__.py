# src/shared/__init__.py
"""
Общий код границы HTTP.

Модули:
- models: схемы запросов, команды для ядра и общие ответы
"""

__all__: list[str] = []
