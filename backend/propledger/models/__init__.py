from .auth import User, SessionToken
from .accounts import Account, ACCOUNT_TYPES, DEBIT_NORMAL_TYPES, CREDIT_NORMAL_TYPES
from .ledger import Transaction, TransactionEntry
from .finance import Residence, Expense, OtherIncome, Maintenance
from .audit import AuditLog

__all__ = [
    'User', 'SessionToken',
    'Account', 'ACCOUNT_TYPES', 'DEBIT_NORMAL_TYPES', 'CREDIT_NORMAL_TYPES',
    'Transaction', 'TransactionEntry',
    'Residence', 'Expense', 'OtherIncome', 'Maintenance',
    'AuditLog',
]
