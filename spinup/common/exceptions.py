from fastapi import HTTPException, status


class SpinUpException(HTTPException):
    def __init__(self, detail: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(status_code=status_code, detail=detail)


class UnauthenticatedError(SpinUpException):
    def __init__(self, detail: str = "Authentication required"):
        super().__init__(detail=detail, status_code=status.HTTP_401_UNAUTHORIZED)


class NotFoundError(SpinUpException):
    def __init__(self, resource: str, resource_id: str | None = None):
        detail = f"{resource} not found"
        if resource_id:
            detail = f"{resource} '{resource_id}' not found"
        super().__init__(detail=detail, status_code=status.HTTP_404_NOT_FOUND)


class PermissionDeniedError(SpinUpException):
    def __init__(self, detail: str = "You do not have permission to perform this action"):
        super().__init__(detail=detail, status_code=status.HTTP_403_FORBIDDEN)


class BadRequestError(SpinUpException):
    def __init__(self, detail: str):
        super().__init__(detail=detail, status_code=status.HTTP_400_BAD_REQUEST)


class ConflictError(SpinUpException):
    def __init__(self, detail: str):
        super().__init__(detail=detail, status_code=status.HTTP_409_CONFLICT)


class NotConnectedError(BadRequestError):
    def __init__(self, team_id: str | None = None):
        detail = "Trello is not connected"
        if team_id:
            detail = f"Trello is not connected for team '{team_id}'"
        super().__init__(detail)


class MalformedPayloadError(BadRequestError):
    def __init__(self, detail: str = "Malformed webhook payload"):
        super().__init__(detail)


class InvalidSignatureError(SpinUpException):
    def __init__(self, detail: str = "Invalid webhook signature"):
        super().__init__(detail=detail, status_code=status.HTTP_401_UNAUTHORIZED)


class InvalidCredentialError(SpinUpException):
    def __init__(self, detail: str = "Trello rejected the supplied token"):
        super().__init__(detail=detail, status_code=status.HTTP_400_BAD_REQUEST)


class ExternalServiceError(SpinUpException):
    def __init__(self, service: str, detail: str | None = None, upstream_status: int | None = None):
        msg = f"External service error: {service}"
        if detail:
            msg += f" - {detail}"
        self.service = service
        self.upstream_status = upstream_status
        super().__init__(detail=msg, status_code=status.HTTP_502_BAD_GATEWAY)

    @property
    def is_credential_rejection(self) -> bool:
        return self.upstream_status in (400, 401, 403)
