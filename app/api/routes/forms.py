from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.identity import identity_from_request, new_caller_token
from app.core.rate_limit import get_form_protection_service, raise_rate_limited
from app.schemas.forms import FormSubmission, FormSubmissionResponse, TimeTokenResponse
from app.services.form_protection_service import FormProtectionService
from app.utils.fingerprint import Identity

router = APIRouter(tags=["Forms"])

_CALLER_COOKIE_MAX_AGE = 365 * 24 * 3600


@router.get("/forms/time-token", response_model=TimeTokenResponse)
def issue_time_token(
    request: Request,
    response: Response,
    service: FormProtectionService = Depends(get_form_protection_service),
) -> TimeTokenResponse:
    """Issue a signed time token for a form about to be rendered.

    Also hands out a caller cookie when the client has none. The cookie only
    helps correlate logs across visits; rate limiting never depends on it.
    """
    cookie_name = settings.rate_limit.caller_cookie_name
    if not request.cookies.get(cookie_name):
        response.set_cookie(
            cookie_name,
            new_caller_token(),
            max_age=_CALLER_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
        )
    return TimeTokenResponse(field=service.time_field, token=service.issue_time_token())


@router.post(
    "/forms/submit",
    response_model=FormSubmissionResponse,
    responses={
        422: {"model": FormSubmissionResponse, "description": "Spam or time-token check failed"},
        429: {"description": "Too many submissions (spacing or quota)"},
    },
)
def submit_form(
    submission: FormSubmission,
    identity: Identity = Depends(identity_from_request),
    service: FormProtectionService = Depends(get_form_protection_service),
) -> FormSubmissionResponse | JSONResponse:
    """Check a form submission.

    Returns:
        200 with ``accepted=true`` when every check passes, 422 with field
        errors for spam/time-token failures.

    Raises:
        HTTPException: 429 when the caller is rate limited; the reason and
            message differ between spacing and quota denials.
    """
    result = service.check_submission(
        submission.fields,
        identity,
        form_id=submission.form_id,
    )

    if result.rate_limited and result.rate_limit is not None:
        raise_rate_limited(
            result.rate_limit,
            service.rate_limit_message(result.rate_limit.decision),
        )

    if not result.accepted:
        body = FormSubmissionResponse(accepted=False, errors=result.errors)
        return JSONResponse(status_code=422, content=body.model_dump())

    return FormSubmissionResponse(accepted=True)
