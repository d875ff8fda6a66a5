# medicine_corner/models/__init__.py
from .medicine import Medicine, StockAlert
from .medicine_stock import MedicineStock, StockTransaction, StockTxnType, PaymentStatus
from .vendor import (
    MedicineVendor,
    MedicineVendorTransaction,
    MedicineVendorPayment,
    VendorPaymentAllocation,
    VendorTxnType,
)
from .sale import MedicineSale, MedicineSaleItem
from .number_series import DocumentNumberSeries
from .error_log import ErrorLog
from .account import AccountTxnType, MedicineAccount, MedicineAccountTxn

__all__ = [
    "Medicine",
    "StockAlert",
    "MedicineStock",
    "StockTransaction",
    "StockTxnType",
    "PaymentStatus",
    "MedicineVendor",
    "MedicineVendorTransaction",
    "MedicineVendorPayment",
    "VendorPaymentAllocation",
    "VendorTxnType",
    "MedicineSale",
    "MedicineSaleItem",
    "DocumentNumberSeries",
    "ErrorLog",
    "AccountTxnType",
    "MedicineAccount",
    "MedicineAccountTxn",
]
