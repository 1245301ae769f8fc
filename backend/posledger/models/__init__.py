from .tenancy import Store
from .auth import User
from .customers import Customer, Supplier
from .inventory import Category, Product, InventoryMovement
from .sales import Sale, SaleItem
from .cashflow import CashFlowCategory, CashFlowEntry
from .subscriptions import SubscriptionPlan, UserSubscription, SubscriptionPayment

__all__ = [
    'Store',
    'User',
    'Customer', 'Supplier',
    'Category', 'Product', 'InventoryMovement',
    'Sale', 'SaleItem',
    'CashFlowCategory', 'CashFlowEntry',
    'SubscriptionPlan', 'UserSubscription', 'SubscriptionPayment',
]
