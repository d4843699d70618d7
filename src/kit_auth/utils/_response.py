from fastapi.responses import RedirectResponse
from typing_extensions import assert_never

from ..models.callback_outcome import CallbackFailure, CallbackOutcome, CallbackSuccess

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def redirect_for_outcome(
    outcome: CallbackOutcome, status_code: int = 302
) -> RedirectResponse:
    """Turn a callback outcome into the redirect sent back to the browser."""
    match outcome:
        case CallbackSuccess(next_path=next_path):
            location = next_path
        case CallbackFailure(next_path=next_path):
            location = next_path
        case _:
            assert_never(outcome)

    return RedirectResponse(
        location, status_code=status_code, headers=NO_STORE_HEADERS
    )
