from .catalog import FREE_SIZE, Product, ProductSizeStock, StockMovement
from .customers import Customer, CustomerTransaction
from .sales import Sale, SaleItem, Payment

__all__ = [
    'FREE_SIZE',
    'Product', 'ProductSizeStock', 'StockMovement',
    'Customer', 'CustomerTransaction',
    'Sale', 'SaleItem', 'Payment',
]
