from .tenancy import Organization, Store
from .auth import User, SessionToken
from .security import SecurityEvent
from .catalog import Product, Characteristic, CharacteristicOption, Variant, VariantOption
from .inventory import StockEntry
from .customers import Client, ClientPayment
from .sales import Sale, SaleLine
from .staff import Employee

__all__ = [
    'Organization', 'Store',
    'User', 'SessionToken', 'SecurityEvent',
    'Product', 'Characteristic', 'CharacteristicOption', 'Variant', 'VariantOption',
    'StockEntry',
    'Client', 'ClientPayment',
    'Sale', 'SaleLine',
    'Employee',
]
