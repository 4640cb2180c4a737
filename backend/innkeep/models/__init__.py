from .resources import Resource
from .customers import Customer, LoyaltyTransaction
from .catalog import CatalogItem, StockAdjustment
from .sales import Sale, SaleLineItem, Payment
from .returns import SaleReturn, SaleReturnLine
from .shifts import Shift, Expense
from .procurement import Supplier, Purchase, PurchaseLine, SupplierPayment
from .ledger import LedgerEvent

__all__ = [
    'Resource',
    'Customer', 'LoyaltyTransaction',
    'CatalogItem', 'StockAdjustment',
    'Sale', 'SaleLineItem', 'Payment',
    'SaleReturn', 'SaleReturnLine',
    'Shift', 'Expense',
    'Supplier', 'Purchase', 'PurchaseLine', 'SupplierPayment',
    'LedgerEvent',
]
