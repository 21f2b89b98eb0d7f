# app/domain/enums.py
import enum


class BillStatus(str, enum.Enum):
    PENDING = "PENDING"
    DONE = "DONE"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"


class BillType(str, enum.Enum):
    MONEY_IN = "MONEY_IN"


class PaymentMethod(str, enum.Enum):
    MOMO = "MOMO"
    VIETQR_PAYOS = "VIETQR_PAYOS"


class StockModel(str, enum.Enum):
    """MANUAL - licznik stock, SERIALIZED - pojedyncze ProductItem (np. klucze licencyjne)."""

    MANUAL = "MANUAL"
    SERIALIZED = "SERIALIZED"


class SelectFrom(str, enum.Enum):
    CART = "CART"
    DIRECT = "DIRECT"


class UserRole(str, enum.Enum):
    USER = "USER"
    SELLER = "SELLER"
    ADMINISTRATOR = "ADMINISTRATOR"
