from . import auth
from . import categories
from . import customers
from . import movements
from . import products
from . import suppliers
from . import users

__all__ = [
    "auth",
    "categories",
    "customers",
    "movements",
    "products",
    "suppliers",
    "users",
]
