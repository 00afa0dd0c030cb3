# storefront/api/errors.py
from fastapi import HTTPException

from storefront.domain.errors import (
    CartAccessError,
    CheckoutError,
    ConcurrencyConflictError,
    ExternalServiceError,
    InvalidStatusTransitionError,
    NotFoundError,
    PaymentNotConfirmedError,
    StockShortageError,
    TransientStoreError,
    ValidationError,
)

# most specific classes first, NotFoundError is a ValidationError
_STATUS_CODES = (
    (NotFoundError, 404),
    (InvalidStatusTransitionError, 409),
    (ValidationError, 400),
    (CartAccessError, 403),
    (ConcurrencyConflictError, 409),
    (StockShortageError, 409),
    (PaymentNotConfirmedError, 402),
    (ExternalServiceError, 502),
    (TransientStoreError, 503),
)


def to_http(error: CheckoutError) -> HTTPException:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=error.to_dict())
    return HTTPException(status_code=500, detail=error.to_dict())
