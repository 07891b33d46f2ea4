from .auth import User, SessionToken
from .catalog import Product
from .orders import Order, OrderLine
from .reports import WeeklyReport, ReportDetail

__all__ = [
    'User', 'SessionToken',
    'Product',
    'Order', 'OrderLine',
    'WeeklyReport', 'ReportDetail',
]
