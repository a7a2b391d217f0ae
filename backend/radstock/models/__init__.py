from .catalog import Radiator, Warehouse
from .parties import Customer, User
from .stock import StockLevel, StockHistory, MovementType, ChangeType
from .sales import Sale, SaleItem, SaleStatus

__all__ = [
    'Radiator', 'Warehouse',
    'Customer', 'User',
    'StockLevel', 'StockHistory', 'MovementType', 'ChangeType',
    'Sale', 'SaleItem', 'SaleStatus',
]
