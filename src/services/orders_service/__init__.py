# src/services/orders_service/__init__.py
"""
HTTP сервис заказов услуг (FastAPI).
"""
