"""
Request Builder - Validates the cart and submits a bookable service request.

State machine:

    BUILDING -> VALIDATING -> AWAITING_AUTH | AWAITING_CAR_DETAILS
                           -> SUBMITTING -> SUBMITTED | FAILED

Precondition failures return to BUILDING. Any user change to the cart
also returns the machine to BUILDING. FAILED keeps the cart intact so the
same request can be retried.
"""
import asyncio
from enum import Enum
from typing import Callable, Optional

from ..config.logging import get_logger
from ..engine.errors import (
    NoEligibleProviderError,
    SubmissionError,
    SubmissionInProgressError,
    ValidationError,
)
from ..engine.models import CartState, ServiceRequestPayload
from ..services.cart_service import CartService
from ..services.feeds import RequestSubmitter

logger = get_logger(__name__)


class SubmissionState(str, Enum):
    BUILDING = "building"
    VALIDATING = "validating"
    AWAITING_AUTH = "awaiting_auth"
    AWAITING_CAR_DETAILS = "awaiting_car_details"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    FAILED = "failed"


class RequestBuilder:
    """
    Drives submission of the cart held by a CartService.

    Args:
        cart: The cart service whose state is submitted
        submitter: Collaborator that accepts the assembled payload
        request_login: Called when submission is attempted while signed out
    """

    def __init__(
        self,
        cart: CartService,
        submitter: RequestSubmitter,
        request_login: Optional[Callable[[], None]] = None,
    ):
        self.cart = cart
        self.submitter = submitter
        self.request_login = request_login
        self.state = SubmissionState.BUILDING
        self.last_error: Optional[str] = None
        self.last_payload: Optional[ServiceRequestPayload] = None
        cart.add_listener(self._on_cart_change)

    def _on_cart_change(self, _state: CartState) -> None:
        if self.state != SubmissionState.SUBMITTING:
            self.state = SubmissionState.BUILDING

    def validate(self) -> None:
        """
        Check the fields every request needs.

        Raises:
            ValidationError: Naming the first missing field
        """
        state = self.cart.state
        if not state.items:
            raise ValidationError("Add at least one service to the cart", field="items")
        if not state.address_id:
            raise ValidationError("Please select an address", field="addressId")
        if not state.slot_id:
            raise ValidationError("Please select a time slot", field="slotId")

    def resolve_providers(self) -> list[str]:
        """
        Providers to notify: the manual selection, else every eligible provider.

        Raises:
            NoEligibleProviderError: If both are empty
        """
        selected = list(self.cart.state.candidate_provider_ids)
        if selected:
            return selected
        eligible = [match.provider.id for match in self.cart.eligible_providers()]
        if not eligible:
            raise NoEligibleProviderError()
        return eligible

    def build_payload(self, provider_ids: list[str]) -> ServiceRequestPayload:
        state = self.cart.state
        return ServiceRequestPayload(
            items=list(state.items),
            address_id=state.address_id,
            address=state.find_address(state.address_id),
            slot_id=state.slot_id,
            coupon_code=state.coupon_code,
            candidate_provider_ids=provider_ids,
            total=self.cart.totals().total,
            note=state.note,
            car_details=state.car_details,
            service_types=self.cart.service_types(),
        )

    async def submit(self, is_authenticated: bool) -> SubmissionState:
        """
        Attempt to submit the cart.

        Returns:
            AWAITING_AUTH or AWAITING_CAR_DETAILS when halted, SUBMITTED on success

        Raises:
            ValidationError: Items, address or slot missing
            NoEligibleProviderError: Nobody to notify
            SubmissionError: The collaborator rejected the request
            SubmissionInProgressError: Another submission is in flight
        """
        if self.cart.submitting or self.state == SubmissionState.SUBMITTING:
            raise SubmissionInProgressError()

        # 1. Authentication
        if not is_authenticated:
            self.state = SubmissionState.AWAITING_AUTH
            if self.request_login:
                self.request_login()
            return self.state

        # 2. Required fields
        self.state = SubmissionState.VALIDATING
        try:
            self.validate()
        except ValidationError:
            self.state = SubmissionState.BUILDING
            raise

        # 3. Car details
        car_details = self.cart.state.car_details
        if car_details is None or car_details.missing_fields():
            self.state = SubmissionState.AWAITING_CAR_DETAILS
            return self.state

        # 4. Providers to notify
        try:
            provider_ids = self.resolve_providers()
        except NoEligibleProviderError:
            self.state = SubmissionState.BUILDING
            raise

        # 5. Hand off
        payload = self.build_payload(provider_ids)
        self.last_payload = payload
        self.state = SubmissionState.SUBMITTING
        self.cart.begin_submission()
        try:
            await self.submitter.submit_service_request(payload.to_dict())
        except asyncio.CancelledError:
            self.state = SubmissionState.BUILDING
            raise
        except Exception as e:
            self.state = SubmissionState.FAILED
            self.last_error = str(e)
            logger.warning("Service request submission failed: %s", e)
            if isinstance(e, SubmissionError):
                raise
            raise SubmissionError(str(e)) from e
        else:
            self.last_error = None
            if self.cart.settings.clear_cart_on_submit:
                self.cart.clear_after_submission()
            self.state = SubmissionState.SUBMITTED
            logger.info("Service request submitted to %d provider(s)", len(provider_ids))
        finally:
            self.cart.end_submission()

        return self.state
