from .tenancy import Account, Operator
from .tables import PoolTable, RateHistory
from .customers import Customer
from .sessions import PlaySession, AdditionalOrder
from .payments import Payment
from .cashback import CashbackEntry, CashbackSettings

__all__ = [
    'Account', 'Operator',
    'PoolTable', 'RateHistory',
    'Customer',
    'PlaySession', 'AdditionalOrder',
    'Payment',
    'CashbackEntry', 'CashbackSettings',
]
