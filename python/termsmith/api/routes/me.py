"""Current user endpoint.

Returns the account behind the caller's session token.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from termsmith.api.deps import get_db
from termsmith.auth.session import Viewer, get_viewer
from termsmith.responses import success_response
from termsmith.services.users import get_user_out_or_404

router = APIRouter(prefix="/api", tags=["me"])


@router.get("/me")
def get_me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get current user information.

    Returns:
        Success envelope with id, email, full_name and created_at.
    """
    user = get_user_out_or_404(db, viewer.user_id)
    return success_response(user.model_dump(mode="json"))
