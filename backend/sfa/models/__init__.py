from .reference import Client, SalesRep, Product
from .stock import ClientStock
from .uplift import UpliftSale, UpliftSaleItem

__all__ = [
    'Client', 'SalesRep', 'Product',
    'ClientStock',
    'UpliftSale', 'UpliftSaleItem',
]
