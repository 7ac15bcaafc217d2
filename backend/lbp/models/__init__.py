from .parcels import Agency, Parcel, ParcelLine
from .cash import CashRegister, CashMovement, MovementKind, Direction, INFLOW_KINDS
from .invoices import Invoice, InvoiceState
from .payments import Payment, PaymentLink, PaymentMode, PaymentState, PaymentLinkStatus

__all__ = [
    'Agency', 'Parcel', 'ParcelLine',
    'CashRegister', 'CashMovement', 'MovementKind', 'Direction', 'INFLOW_KINDS',
    'Invoice', 'InvoiceState',
    'Payment', 'PaymentLink', 'PaymentMode', 'PaymentState', 'PaymentLinkStatus',
]
