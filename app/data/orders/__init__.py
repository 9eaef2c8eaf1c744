"""
Order models: client requests, client orders with payments, supplier orders and status history
"""

from app.data.orders.order_request import OrderRequest, OrderRequestItem
from app.data.orders.client_order import ClientOrder, ClientOrderItem, OrderPayment
from app.data.orders.order_history import OrderHistory
from app.data.orders.supplier_order import SupplierOrder, SupplierOrderItem, SupplierPayment

__all__ = [
    'OrderRequest',
    'OrderRequestItem',
    'ClientOrder',
    'ClientOrderItem',
    'OrderPayment',
    'OrderHistory',
    'SupplierOrder',
    'SupplierOrderItem',
    'SupplierPayment',
]
