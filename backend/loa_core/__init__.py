"""
LOA Reconciliation & Lifecycle Core
"""
from .results import (
    ErrorKind,
    FieldError,
    ServiceResult,
    ProcurementError,
    PersistenceError,
    StorageError
)

from .financial_precision import (
    to_decimal,
    round_financial,
    to_float,
    safe_subtract,
    safe_add,
    safe_divide,
    FinancialPrecisionError
)

from .amount_validator import (
    ValidityResult,
    validate_invoice_amounts,
    validate_pending_split
)

from .financial_calculator import (
    FinancialCalculator,
    InvoiceTotals,
    PendingPercentages,
    calculate_invoice_pending,
    calculate_pending_percentages
)

from .status_machine import (
    LoaStatus,
    BillStatus,
    StateMachine,
    UnknownStateError,
    loa_status_machine,
    bill_status_machine
)

from .repositories import (
    Repositories,
    LoaFilter
)

from .bill_ledger import BillLedger
from .deposit_linkage import DepositLinkage
from .loa_lifecycle import LoaService

__all__ = [
    # Results & errors
    'ErrorKind',
    'FieldError',
    'ServiceResult',
    'ProcurementError',
    'PersistenceError',
    'StorageError',
    # Financial Precision
    'to_decimal',
    'round_financial',
    'to_float',
    'safe_subtract',
    'safe_add',
    'safe_divide',
    'FinancialPrecisionError',
    # Amount Validator
    'ValidityResult',
    'validate_invoice_amounts',
    'validate_pending_split',
    # Financial Calculator
    'FinancialCalculator',
    'InvoiceTotals',
    'PendingPercentages',
    'calculate_invoice_pending',
    'calculate_pending_percentages',
    # Status
    'LoaStatus',
    'BillStatus',
    'StateMachine',
    'UnknownStateError',
    'loa_status_machine',
    'bill_status_machine',
    # Persistence
    'Repositories',
    'LoaFilter',
    # Services
    'BillLedger',
    'DepositLinkage',
    'LoaService',
]
