from .inventory import Material, Product, BomItem, StockIn, quantity_to_json
from .sales import Sale, SaleLine
from .documents import DocumentSequence
from .finance import CapitalEntry

__all__ = [
    'Material', 'Product', 'BomItem', 'StockIn', 'quantity_to_json',
    'Sale', 'SaleLine',
    'DocumentSequence',
    'CapitalEntry',
]
