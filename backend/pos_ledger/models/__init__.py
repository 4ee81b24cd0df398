from .tenancy import Tenant, Warehouse, User
from .inventory import Product, ComponentLink, WarehouseStock
from .sales import Sale, SaleItem, SaleItemComponent, SalePayment
from .registers import CashRegisterSession, CashTransaction

__all__ = [
    'Tenant', 'Warehouse', 'User',
    'Product', 'ComponentLink', 'WarehouseStock',
    'Sale', 'SaleItem', 'SaleItemComponent', 'SalePayment',
    'CashRegisterSession', 'CashTransaction',
]
