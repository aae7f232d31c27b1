from .masters import Category, Store, Item, Supplier, Customer
from .stock import StockBalance, InventoryTransaction, DocumentSequence, AuditLog
from .purchasing import (
    PurchaseGrn, PurchaseGrnItem,
    PurchaseReturn, PurchaseReturnItem,
    PurchaseOrder, PurchaseOrderItem,
)
from .sales import Sale, SaleItem, SalesReturn, SalesReturnItem, Quotation, QuotationItem
from .stock_documents import (
    DispatchNote, DispatchNoteItem,
    StockAdjustment, StockAdjustmentItem,
    OpeningStockEntry, OpeningStockItem,
)
from .accounts import (
    SupplierOpeningBalance, CustomerOpeningBalance,
    SupplierPayment, SupplierPaymentAllocation,
    CustomerPayment, CustomerPaymentAllocation,
)

__all__ = [
    'Category', 'Store', 'Item', 'Supplier', 'Customer',
    'StockBalance', 'InventoryTransaction', 'DocumentSequence', 'AuditLog',
    'PurchaseGrn', 'PurchaseGrnItem', 'PurchaseReturn', 'PurchaseReturnItem',
    'PurchaseOrder', 'PurchaseOrderItem',
    'Sale', 'SaleItem', 'SalesReturn', 'SalesReturnItem', 'Quotation', 'QuotationItem',
    'DispatchNote', 'DispatchNoteItem',
    'StockAdjustment', 'StockAdjustmentItem',
    'OpeningStockEntry', 'OpeningStockItem',
    'SupplierOpeningBalance', 'CustomerOpeningBalance',
    'SupplierPayment', 'SupplierPaymentAllocation',
    'CustomerPayment', 'CustomerPaymentAllocation',
]
