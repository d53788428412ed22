"""User registration endpoint."""

import logging
from fastapi import APIRouter, Depends

from ..dependencies import Services, get_services, parsed_body
from ..errors import InternalError
from ..schemas import RegisterUserRequest, RegisterUserResponse
from ..utils import user_id_from_email

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register-user", response_model=RegisterUserResponse)
def register_user(
    req: RegisterUserRequest = Depends(parsed_body(RegisterUserRequest)),
    services: Services = Depends(get_services),
) -> RegisterUserResponse:
    """Register a user in the chat directory and the database, idempotently."""
    user_id = user_id_from_email(req.email)

    # Check-then-act against each store, no locking between them
    try:
        if services.directory.get_user(user_id) is None:
            services.directory.upsert_user(user_id, req.name, req.email)
        if services.store.get_user(user_id) is None:
            services.store.create_user(user_id, req.name, req.email)
            logger.info(f"Registered user {user_id}")
    except Exception:
        logger.exception(f"Error while registering user {user_id}")
        raise InternalError()

    return RegisterUserResponse(userId=user_id, name=req.name, email=req.email)
