from printshop.models.accounts import Account, AccountTransaction, AllocationRule
from printshop.models.orders import Client, Order, OrderItem, OrderPayment
from printshop.models.materials import (
    MaterialInstallment,
    MaterialNote,
    MaterialPayment,
    MaterialPurchase,
)
from printshop.models.expenses import (
    Expense,
    ExpenseNote,
    ExpensePayment,
    RecurringExpenseOccurrence,
)
from printshop.models.notifications import Notification

__all__ = [
    "Account",
    "AccountTransaction",
    "AllocationRule",
    "Client",
    "Order",
    "OrderItem",
    "OrderPayment",
    "MaterialPurchase",
    "MaterialPayment",
    "MaterialInstallment",
    "MaterialNote",
    "Expense",
    "ExpensePayment",
    "ExpenseNote",
    "RecurringExpenseOccurrence",
    "Notification",
]
