"""CPF block status endpoint."""

from fastapi import APIRouter, status

from cin_agenda.dependencies import Cpf, ServicesDep
from cin_agenda.schemas.cpf_blocks import CpfBlockStatus

public_router = APIRouter()


@public_router.get(
    "/cpf-blocks/{cpf}",
    response_model=CpfBlockStatus,
    status_code=status.HTTP_200_OK,
    summary="Check whether a CPF may book",
)
async def get_cpf_block_status(
    tenant_id: int,
    cpf: Cpf,
    services: ServicesDep,
) -> CpfBlockStatus:
    """
    Booking block status of a citizen.

    Args:
        tenant_id: Tenant ID
        cpf: Citizen CPF, formatted or digits only
        services: Scheduling services

    Returns:
        Block status and the number of recent cancellations
    """
    return await services.throttle.block_status(tenant_id, cpf)
