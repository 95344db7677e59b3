"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cin_agenda.core.exceptions import BadRequestException, ErrorKind, SchedulingError
from cin_agenda.core.security import StaffPrincipal, decode_access_token, principal_from_payload
from cin_agenda.schemas.appointments import normalize_cpf
from cin_agenda.services.collaborators import Actor, ActorKind
from cin_agenda.services.factory import Services

# Security
security = HTTPBearer()


def get_services(request: Request) -> Services:
    """Scheduling services built in the application lifespan."""
    return request.app.state.services


async def get_current_staff(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> StaffPrincipal:
    """
    Extract and validate the staff identity from the JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Staff principal with its tenant

    Raises:
        HTTPException: If token is invalid, expired or lacks the staff claims
    """
    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    principal = principal_from_payload(payload)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is missing staff claims",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return principal


async def get_tenant_staff(
    tenant_id: int,
    staff: Annotated[StaffPrincipal, Depends(get_current_staff)],
) -> StaffPrincipal:
    """
    Require the token's tenant to match the tenant in the path.

    Raises:
        SchedulingError: TENANT_MISMATCH
    """
    if staff.tenant_id != tenant_id:
        raise SchedulingError(ErrorKind.TENANT_MISMATCH)
    return staff


async def get_tenant_admin(
    staff: Annotated[StaffPrincipal, Depends(get_tenant_staff)],
) -> StaffPrincipal:
    """
    Require a tenant administrator.

    Raises:
        HTTPException: If the staff member is not an administrator
    """
    if staff.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required",
        )
    return staff


def get_cpf(cpf: str) -> str:
    """
    Normalize a CPF path parameter.

    Raises:
        BadRequestException: If the value does not have 11 digits
    """
    try:
        return normalize_cpf(cpf)
    except ValueError as e:
        raise BadRequestException(str(e)) from e


def staff_actor(staff: StaffPrincipal) -> Actor:
    """Actor recorded for operations performed by a staff member."""
    return Actor(name=staff.name, kind=ActorKind.STAFF, user_id=staff.user_id)


# Type aliases for dependency injection
ServicesDep = Annotated[Services, Depends(get_services)]
TenantStaff = Annotated[StaffPrincipal, Depends(get_tenant_staff)]
TenantAdmin = Annotated[StaffPrincipal, Depends(get_tenant_admin)]
Cpf = Annotated[str, Depends(get_cpf)]
