"""FastAPI router for user CRUD endpoints."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, Request, Response, status

from user_registry.application.dto.user_models import (
    UserCreateRequest,
    UserResponse,
    UserUpdateRequest,
)
from user_registry.application.ports.user_repository_port import UserRecord
from user_registry.application.services.user_service import (
    ServiceResult,
    UserErrorCode,
    UserService,
)
from user_registry.infrastructure.http.correlation import request_correlation_id

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    UserErrorCode.DUPLICATE_EMAIL: status.HTTP_409_CONFLICT,
    UserErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def build_user_router(*, user_service: UserService) -> APIRouter:
    """Build router exposing `/api/users` endpoints."""

    router = APIRouter(prefix="/api/users", tags=["users"])

    @router.get("", response_model=list[UserResponse])
    async def list_users() -> list[UserResponse]:
        users = await user_service.list_users()
        return [UserResponse.from_record(user) for user in users]

    @router.get("/{user_id}", response_model=UserResponse)
    async def get_user(user_id: UUID) -> UserResponse:
        user = await user_service.get_user(user_id=user_id)
        if user is None:
            raise HTTPException(status_code=404, detail=f"User with ID '{user_id}' not found.")
        return UserResponse.from_record(user)

    @router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
    async def create_user(
        payload: UserCreateRequest,
        request: Request,
        response: Response,
    ) -> UserResponse:
        result = await user_service.create_user(
            payload=payload.to_input(),
            correlation_id=request_correlation_id(request),
        )
        created = _unwrap(result)
        response.headers["Location"] = str(request.url_for("get_user", user_id=created.user_id))
        return UserResponse.from_record(created)

    @router.put("/{user_id}", response_model=UserResponse)
    async def update_user(user_id: UUID, payload: UserUpdateRequest) -> UserResponse:
        result = await user_service.update_user(user_id=user_id, payload=payload.to_input())
        return UserResponse.from_record(_unwrap(result))

    @router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_user(user_id: UUID) -> Response:
        if not await user_service.delete_user(user_id=user_id):
            raise HTTPException(status_code=404, detail=f"User with ID '{user_id}' not found.")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


def _unwrap(result: ServiceResult[UserRecord]) -> UserRecord:
    if result.success and result.data is not None:
        return result.data
    status_code = _ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST)
    raise HTTPException(status_code=status_code, detail=result.error_message)
