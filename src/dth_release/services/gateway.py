"""Public, token-keyed verification surface used by the dealer's scan flow."""

from typing import Optional

from ..errors import NotFound
from ..models import ConfirmationResult, DealerView
from .loads import LoadService

INVALID_LINK = "Invalid verification link"


class VerificationGateway:
    """
    Unauthenticated read/confirm access keyed by verification token.

    Only the sanitized DealerView ever leaves this class.
    """

    def __init__(self, loads: LoadService, app_name: str = "DTH Logistics"):
        self.loads = loads
        self.app_name = app_name

    def get_by_token(self, token: str) -> DealerView:
        try:
            load = self.loads.get_load_by_token(token)
        except NotFound:
            raise NotFound(INVALID_LINK) from None
        return DealerView.from_load(load)

    def confirm(self, token: str, pin: Optional[str], confirmed_by: Optional[str] = None) -> ConfirmationResult:
        """Confirm release. Protocol failures keep their dealer-facing message."""
        try:
            load = self.loads.confirm_release(token=token, pin=pin, confirmed_by=confirmed_by)
        except NotFound:
            raise NotFound(INVALID_LINK) from None
        return ConfirmationResult(
            status=load.status,
            confirmation_message=f"This vehicle has been officially released by {self.app_name}.",
        )
