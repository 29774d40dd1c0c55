import hashlib
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from src.application.order_service import OrderLifecycleService
from src.application.results import OperationResult, T
from src.application.showtime_service import ShowtimeService
from src.application.staff_operation_log import StaffOperationLog
from src.api.schemas.schemas import (
    CancelRequest,
    ChangeSeatsRequest,
    ErrorDetail,
    ExpireStaleResponse,
    OrderCreate,
    OrderResponse,
    PaymentRequest,
    RazorpayCheckoutResponse,
    RazorpayVerifyRequest,
    RefundRequest,
    SellRequest,
    ShowtimeCreate,
    ShowtimeResponse,
    StaffOperationResponse,
    TheaterCreate,
    TheaterResponse,
)
from src.domain.exceptions import BookingEngineError, ErrorCode, InvalidTransitionError
from src.domain.state_machine import OrderStatus
from src.infrastructure.payments.razorpay_gateway import (
    PROVIDER,
    InvalidPaymentSignature,
    PaymentGatewayNotConfigured,
    RazorpayGateway,
)


router = APIRouter()
logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.EMPTY_SELECTION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_SEATS: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_TICKET_TYPE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_PAYMENT_METHOD: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_SHOWTIME: status.HTTP_400_BAD_REQUEST,
    ErrorCode.SEATS_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_CHECKED: status.HTTP_409_CONFLICT,
    ErrorCode.TOO_EARLY: status.HTTP_409_CONFLICT,
    ErrorCode.TOO_LATE: status.HTTP_409_CONFLICT,
    ErrorCode.REFUND_WINDOW_CLOSED: status.HTTP_409_CONFLICT,
    ErrorCode.STORAGE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_order_service() -> OrderLifecycleService:
    return OrderLifecycleService()


def get_showtime_service() -> ShowtimeService:
    return ShowtimeService()


def get_staff_log() -> StaffOperationLog:
    return StaffOperationLog()


def get_gateway() -> RazorpayGateway:
    return RazorpayGateway()


def error_detail(error: BookingEngineError) -> dict:
    return ErrorDetail(
        code=error.code.value,
        message=error.message,
        showtime_start=getattr(error, "showtime_start", None),
    ).model_dump(mode="json", exclude_none=True)


def _http_error(error: BookingEngineError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_BY_CODE.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error_detail(error),
    )


def _unwrap(result: OperationResult[T]) -> T:
    if not result.ok:
        raise _http_error(result.error)
    return result.value


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "INVALID_REQUEST", "message": str(exc)},
    )


def _hash_webhook_payload(request: RazorpayVerifyRequest) -> str:
    payload = {
        "razorpay_order_id": request.razorpay_order_id,
        "razorpay_payment_id": request.razorpay_payment_id,
        "razorpay_signature": request.razorpay_signature,
    }
    encoded = json.dumps(payload, sort_keys=True).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


@router.get("/health")
def health():
    return {"message": "Cinema Booking Engine is running"}


# -----------------------------
# Catalog
# -----------------------------
@router.post("/theaters", response_model=TheaterResponse)
def create_theater(
    request: TheaterCreate,
    service: ShowtimeService = Depends(get_showtime_service),
):
    try:
        theater_id = service.create_theater(
            name=request.name,
            rows=request.rows,
            columns=request.columns,
            layout=request.layout,
        )
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return TheaterResponse(id=theater_id)


@router.post("/showtimes", response_model=ShowtimeResponse)
def create_showtime(
    request: ShowtimeCreate,
    service: ShowtimeService = Depends(get_showtime_service),
):
    result = service.create_showtime(
        movie_id=request.movie_id,
        theater_id=request.theater_id,
        start_time=request.start_time,
        end_time=request.end_time,
        prices=request.prices,
    )
    return ShowtimeResponse.model_validate(_unwrap(result), from_attributes=True)


@router.get("/showtimes/{showtime_id}/seats", response_model=ShowtimeResponse)
def seat_map(
    showtime_id: str,
    service: ShowtimeService = Depends(get_showtime_service),
):
    result = service.seat_map(showtime_id)
    return ShowtimeResponse.model_validate(_unwrap(result), from_attributes=True)


# -----------------------------
# Orders
# -----------------------------
@router.post("/orders", response_model=OrderResponse)
def create_order(
    request: OrderCreate,
    service: OrderLifecycleService = Depends(get_order_service),
):
    result = service.create_order(
        user_id=request.user_id,
        showtime_id=request.showtime_id,
        seat_ids=request.seat_ids,
        ticket_type=request.ticket_type,
    )
    return OrderResponse.model_validate(_unwrap(result), from_attributes=True)


@router.post("/orders/expire-stale", response_model=ExpireStaleResponse)
def expire_stale_orders(
    service: OrderLifecycleService = Depends(get_order_service),
):
    return ExpireStaleResponse(expired=_unwrap(service.expire_stale_orders()))


@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: str,
    service: OrderLifecycleService = Depends(get_order_service),
):
    result = service.get_order(order_id)
    return OrderResponse.model_validate(_unwrap(result), from_attributes=True)


@router.post("/orders/{order_id}/pay", response_model=OrderResponse)
def pay_order(
    order_id: str,
    request: PaymentRequest,
    service: OrderLifecycleService = Depends(get_order_service),
):
    result = service.mark_paid(order_id, payment_method=request.payment_method)
    return OrderResponse.model_validate(_unwrap(result), from_attributes=True)


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: str,
    request: CancelRequest,
    service: OrderLifecycleService = Depends(get_order_service),
):
    result = service.cancel_order(order_id, actor_id=request.actor_id)
    return OrderResponse.model_validate(_unwrap(result), from_attributes=True)


@router.post("/orders/{order_id}/expire", response_model=OrderResponse)
def expire_order(
    order_id: str,
    service: OrderLifecycleService = Depends(get_order_service),
):
    result = service.expire_if_unpaid(order_id)
    return OrderResponse.model_validate(_unwrap(result), from_attributes=True)


# -----------------------------
# Razorpay checkout
# -----------------------------
@router.post("/orders/{order_id}/razorpay/checkout", response_model=RazorpayCheckoutResponse)
def razorpay_checkout(
    order_id: str,
    service: OrderLifecycleService = Depends(get_order_service),
    gateway: RazorpayGateway = Depends(get_gateway),
):
    # Lapsed orders are expired here so the provider is never asked to charge them.
    order = _unwrap(service.expire_if_unpaid(order_id))
    if order.status != OrderStatus.PENDING:
        raise _http_error(
            InvalidTransitionError(
                from_state=order.status.value,
                to_state=OrderStatus.PAID.value,
                reason="only pending orders can be paid",
            )
        )

    # The provider call runs with no transaction open.
    try:
        provider_order = gateway.create_order(receipt=order.id, amount=order.total_price)
    except PaymentGatewayNotConfigured as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc

    _unwrap(service.attach_provider_order(order.id, provider_order.provider_order_id))
    return RazorpayCheckoutResponse(
        order_id=order.id,
        provider_order_id=provider_order.provider_order_id,
        amount=provider_order.amount,
        currency=provider_order.currency,
        key_id=provider_order.key_id,
    )


@router.post("/orders/{order_id}/razorpay/verify", response_model=OrderResponse)
def razorpay_verify(
    order_id: str,
    request: RazorpayVerifyRequest,
    service: OrderLifecycleService = Depends(get_order_service),
    gateway: RazorpayGateway = Depends(get_gateway),
):
    try:
        gateway.verify_signature(
            provider_order_id=request.razorpay_order_id,
            payment_id=request.razorpay_payment_id,
            signature=request.razorpay_signature,
        )
    except PaymentGatewayNotConfigured as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    except InvalidPaymentSignature as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_SIGNATURE", "message": str(exc)},
        ) from exc

    result = service.confirm_provider_payment(
        order_id=order_id,
        provider=PROVIDER,
        provider_order_id=request.razorpay_order_id,
        payment_id=request.razorpay_payment_id,
        payload_hash=_hash_webhook_payload(request),
    )
    return OrderResponse.model_validate(_unwrap(result), from_attributes=True)


# -----------------------------
# Staff
# -----------------------------
@router.post("/staff/{staff_id}/sell", response_model=OrderResponse)
def sell_ticket(
    staff_id: str,
    request: SellRequest,
    service: OrderLifecycleService = Depends(get_order_service),
):
    result = service.sell_ticket(
        staff_id=staff_id,
        showtime_id=request.showtime_id,
        seat_ids=request.seat_ids,
        ticket_type=request.ticket_type,
        payment_method=request.payment_method,
    )
    return OrderResponse.model_validate(_unwrap(result), from_attributes=True)


@router.post("/staff/{staff_id}/orders/{order_id}/check", response_model=OrderResponse)
def check_ticket(
    staff_id: str,
    order_id: str,
    service: OrderLifecycleService = Depends(get_order_service),
):
    result = service.check_ticket(order_id, staff_id=staff_id)
    return OrderResponse.model_validate(_unwrap(result), from_attributes=True)


@router.post("/staff/{staff_id}/orders/{order_id}/refund", response_model=OrderResponse)
def refund_ticket(
    staff_id: str,
    order_id: str,
    request: RefundRequest,
    service: OrderLifecycleService = Depends(get_order_service),
):
    result = service.refund_ticket(order_id, staff_id=staff_id, reason=request.reason)
    return OrderResponse.model_validate(_unwrap(result), from_attributes=True)


@router.post("/staff/{staff_id}/orders/{order_id}/cancel", response_model=OrderResponse)
def staff_cancel_order(
    staff_id: str,
    order_id: str,
    service: OrderLifecycleService = Depends(get_order_service),
):
    result = service.cancel_order(order_id, actor_id=staff_id, by_staff=True)
    return OrderResponse.model_validate(_unwrap(result), from_attributes=True)


@router.post("/staff/{staff_id}/orders/{order_id}/seats", response_model=OrderResponse)
def change_seats(
    staff_id: str,
    order_id: str,
    request: ChangeSeatsRequest,
    service: OrderLifecycleService = Depends(get_order_service),
):
    result = service.change_seats(order_id, staff_id=staff_id, new_seat_ids=request.seat_ids)
    return OrderResponse.model_validate(_unwrap(result), from_attributes=True)


@router.get("/staff/operations", response_model=list[StaffOperationResponse])
def list_staff_operations(log: StaffOperationLog = Depends(get_staff_log)):
    return [
        StaffOperationResponse.model_validate(operation, from_attributes=True)
        for operation in log.all()
    ]


@router.get("/staff/{staff_id}/operations", response_model=list[StaffOperationResponse])
def list_operations_by_staff(
    staff_id: str,
    log: StaffOperationLog = Depends(get_staff_log),
):
    return [
        StaffOperationResponse.model_validate(operation, from_attributes=True)
        for operation in log.by_staff(staff_id)
    ]
