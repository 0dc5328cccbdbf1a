from fastapi import APIRouter, Depends

from ..auth import SessionAuth, get_csrf_service, require_session
from ..csrf import CSRFService

router = APIRouter(prefix="/api", tags=["CSRF"])


@router.get("/csrf")
async def get_csrf_token(
    auth: SessionAuth = Depends(require_session),
    csrf: CSRFService = Depends(get_csrf_service),
):
    """
    Issue a CSRF token for the signed-in browser session.
    Send it back in the X-CSRF-Token header on POST/PUT/PATCH/DELETE requests.
    """
    return {"csrfToken": csrf.issue(auth.session.real_user.id)}
