from smartmess.schemas.billing.billing import (
    AdjustmentCreate,
    AdjustmentResponse,
    BillingCreate,
    BillingResponse,
    PaymentRecord,
    PaymentResult,
    RefundRequest,
    RefundResult,
    TransactionResponse,
)

__all__ = [
    "AdjustmentCreate",
    "BillingCreate",
    "PaymentRecord",
    "RefundRequest",
    "AdjustmentResponse",
    "BillingResponse",
    "TransactionResponse",
    "PaymentResult",
    "RefundResult",
]
