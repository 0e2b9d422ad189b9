"""
Cart API - FastAPI router for cart operations, provider quotes and submission.
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional

from ..engine.errors import (
    CartError,
    NoEligibleProviderError,
    SubmissionError,
    SubmissionInProgressError,
    ValidationError,
)
from ..engine.models import Address, CarDetails
from ..policy.request_builder import SubmissionState
from .state import CartSession, get_session

router = APIRouter(prefix="/api/cart", tags=["cart"])


# Pydantic models for API
class AddItemRequest(BaseModel):
    service_id: str


class QuantityUpdate(BaseModel):
    delta: int


class AddressSelect(BaseModel):
    address_id: str


class SlotSelect(BaseModel):
    slot_id: str


class CouponSelect(BaseModel):
    code: Optional[str] = None


class ProvidersSelect(BaseModel):
    provider_ids: list[str]


class NoteUpdate(BaseModel):
    note: str = ""


class CarDetailsRequest(BaseModel):
    make: str
    model: str
    year: str
    fuel: str
    registration: Optional[str] = None
    city: Optional[str] = None


class AddressRequest(BaseModel):
    id: str
    label: str
    line1: str
    city: str
    state: str
    pincode: str


class SubmitRequest(BaseModel):
    authenticated: bool = False


def _http_error(e: CartError) -> HTTPException:
    """Map engine errors to HTTP responses."""
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail={"message": str(e), "field": e.field})
    if isinstance(e, (NoEligibleProviderError, SubmissionInProgressError)):
        return HTTPException(status_code=409, detail={"message": str(e)})
    if isinstance(e, SubmissionError):
        return HTTPException(status_code=502, detail={"message": str(e)})
    return HTTPException(status_code=500, detail={"message": str(e)})


@router.get("")
async def get_cart(session: CartSession = Depends(get_session)):
    """Cart state with totals and submission status."""
    summary = session.service.summary()
    summary["submissionState"] = session.builder.state.value
    summary["lastError"] = session.builder.last_error
    return summary


@router.get("/catalog")
async def get_catalog(session: CartSession = Depends(get_session)):
    service = session.service
    return {
        "packages": [p.to_dict() for p in service.catalog()],
        "report": service.catalog_report,
    }


@router.get("/reference")
async def get_reference_data(session: CartSession = Depends(get_session)):
    """Coupons and time slots the cart can select from."""
    settings = session.service.settings
    return {
        "coupons": [c.to_dict() for c in settings.coupons],
        "timeSlots": [s.to_dict() for s in session.service.time_slots],
    }


@router.post("/items", status_code=201)
async def add_item(req: AddItemRequest, session: CartSession = Depends(get_session)):
    try:
        item = session.service.add_item(req.service_id)
    except CartError as e:
        raise _http_error(e)
    return item.to_dict()


@router.patch("/items/{service_id}")
async def update_quantity(service_id: str, req: QuantityUpdate, session: CartSession = Depends(get_session)):
    try:
        item = session.service.set_quantity(service_id, req.delta)
    except CartError as e:
        raise _http_error(e)
    return item.to_dict()


@router.delete("/items/{service_id}")
async def remove_item(service_id: str, session: CartSession = Depends(get_session)):
    try:
        removed = session.service.remove_item(service_id)
    except CartError as e:
        raise _http_error(e)
    if not removed:
        raise HTTPException(status_code=404, detail={"message": f"Service '{service_id}' is not in the cart"})
    return {"removed": service_id}


@router.put("/address")
async def select_address(req: AddressSelect, session: CartSession = Depends(get_session)):
    try:
        session.service.select_address(req.address_id)
    except CartError as e:
        raise _http_error(e)
    return {"addressId": req.address_id}


@router.post("/addresses", status_code=201)
async def save_address(req: AddressRequest, session: CartSession = Depends(get_session)):
    try:
        address = session.service.save_address(Address(**req.model_dump()))
    except CartError as e:
        raise _http_error(e)
    return address.to_dict()


@router.delete("/addresses/{address_id}")
async def remove_address(address_id: str, session: CartSession = Depends(get_session)):
    try:
        removed = session.service.remove_address(address_id)
    except CartError as e:
        raise _http_error(e)
    if not removed:
        raise HTTPException(status_code=404, detail={"message": f"Address '{address_id}' not found"})
    return {"removed": address_id, "addressId": session.service.state.address_id}


@router.put("/slot")
async def select_slot(req: SlotSelect, session: CartSession = Depends(get_session)):
    try:
        session.service.select_slot(req.slot_id)
    except CartError as e:
        raise _http_error(e)
    return {"slotId": req.slot_id}


@router.put("/coupon")
async def select_coupon(req: CouponSelect, session: CartSession = Depends(get_session)):
    try:
        session.service.select_coupon(req.code)
    except CartError as e:
        raise _http_error(e)
    return {"couponCode": session.service.state.coupon_code, "totals": session.service.totals().to_dict()}


@router.put("/providers")
async def select_providers(req: ProvidersSelect, session: CartSession = Depends(get_session)):
    try:
        selected = session.service.select_providers(req.provider_ids)
    except CartError as e:
        raise _http_error(e)
    return {"candidateProviderIds": selected}


@router.put("/note")
async def set_note(req: NoteUpdate, session: CartSession = Depends(get_session)):
    try:
        session.service.set_note(req.note)
    except CartError as e:
        raise _http_error(e)
    return {"note": session.service.state.note}


@router.put("/car-details")
async def set_car_details(req: CarDetailsRequest, session: CartSession = Depends(get_session)):
    try:
        session.service.set_car_details(CarDetails(**req.model_dump()))
    except CartError as e:
        raise _http_error(e)
    return session.service.state.car_details.to_dict()


@router.get("/providers")
async def get_ranked_providers(session: CartSession = Depends(get_session)):
    """Eligible providers with their quotes, cheapest first."""
    return [quote.to_dict() for quote in session.service.ranked_quotes()]


@router.post("/submit")
async def submit_request(req: SubmitRequest, session: CartSession = Depends(get_session)):
    builder = session.builder
    try:
        state = await builder.submit(is_authenticated=req.authenticated)
    except CartError as e:
        raise _http_error(e)
    return {
        "state": state.value,
        "payload": builder.last_payload.to_dict() if state == SubmissionState.SUBMITTED and builder.last_payload else None,
    }


@router.post("/reset")
async def reset_cart(session: CartSession = Depends(get_session)):
    try:
        state = session.service.reset()
    except CartError as e:
        raise _http_error(e)
    return state.to_dict()
