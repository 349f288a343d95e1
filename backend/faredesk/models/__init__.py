from faredesk.models.markup import MarkupRule
from faredesk.models.order import OrderRecord

__all__ = [
    "MarkupRule",
    "OrderRecord",
]
