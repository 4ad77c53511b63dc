# routers/__init__.py
from . import billing, payment_arrangements

__all__ = ["billing", "payment_arrangements"]
