from fastapi import APIRouter, Depends
from app.core.dependencies import (
    get_current_user_id, get_two_factor_service, get_trusted_device_service
)
from app.modules.security.client import ClientContext, get_client_context
from app.modules.security.schemas import (
    TwoFactorSetupResponse, TwoFactorVerifyRequest, TwoFactorVerifyResponse,
    TwoFactorStatusResponse, BackupCodesResponse,
    TrustDeviceRequest, TrustedDeviceResponse, DeviceTrustStatusResponse,
    EmailValidationRequest, EmailValidationResponse,
    PasswordValidationRequest, PasswordValidationResponse
)
from app.modules.security.trusted_devices import TrustedDeviceService
from app.modules.security.two_factor import TwoFactorService
from app.modules.security.validation import validate_email, validate_password
from typing import Dict, List

router = APIRouter(prefix="/security", tags=["security"])


@router.post("/2fa/setup", response_model=TwoFactorSetupResponse)
async def setup_two_factor(
    user_data: Dict = Depends(get_current_user_id),
    client: ClientContext = Depends(get_client_context),
    service: TwoFactorService = Depends(get_two_factor_service)
):
    """Start 2FA setup; secret and backup codes are shown only in this response"""
    return service.enable_two_factor(
        user_data["id"], client, account_name=user_data.get("email")
    )


@router.post("/2fa/verify", response_model=TwoFactorVerifyResponse)
async def verify_two_factor(
    request: TwoFactorVerifyRequest,
    user_data: Dict = Depends(get_current_user_id),
    client: ClientContext = Depends(get_client_context),
    service: TwoFactorService = Depends(get_two_factor_service)
):
    """Verify a TOTP code or backup code"""
    return {"valid": service.verify_two_factor(user_data["id"], request.token, client)}


@router.get("/2fa/status", response_model=TwoFactorStatusResponse)
async def two_factor_status(
    user_data: Dict = Depends(get_current_user_id),
    service: TwoFactorService = Depends(get_two_factor_service)
):
    return service.get_status(user_data["id"])


@router.post("/2fa/backup-codes", response_model=BackupCodesResponse)
async def regenerate_backup_codes(
    user_data: Dict = Depends(get_current_user_id),
    client: ClientContext = Depends(get_client_context),
    service: TwoFactorService = Depends(get_two_factor_service)
):
    """Replace all backup codes"""
    return {"backup_codes": service.regenerate_backup_codes(user_data["id"], client)}


@router.delete("/2fa", status_code=204)
async def disable_two_factor(
    user_data: Dict = Depends(get_current_user_id),
    client: ClientContext = Depends(get_client_context),
    service: TwoFactorService = Depends(get_two_factor_service)
):
    """Disable 2FA and forget all trusted devices"""
    service.disable_two_factor(user_data["id"], client)
    return None


@router.get("/devices", response_model=List[TrustedDeviceResponse])
async def list_trusted_devices(
    user_data: Dict = Depends(get_current_user_id),
    client: ClientContext = Depends(get_client_context),
    service: TrustedDeviceService = Depends(get_trusted_device_service)
):
    return service.get_trusted_devices(user_data["id"], client)


@router.post("/devices", response_model=TrustedDeviceResponse, status_code=201)
async def trust_current_device(
    request: TrustDeviceRequest,
    user_data: Dict = Depends(get_current_user_id),
    client: ClientContext = Depends(get_client_context),
    service: TrustedDeviceService = Depends(get_trusted_device_service)
):
    """Trust the calling device for 30 days"""
    return service.add_trusted_device(user_data["id"], client, name=request.name)


@router.get("/devices/current", response_model=DeviceTrustStatusResponse)
async def current_device_trust(
    user_data: Dict = Depends(get_current_user_id),
    client: ClientContext = Depends(get_client_context),
    service: TrustedDeviceService = Depends(get_trusted_device_service)
):
    return {"trusted": service.is_device_trusted(user_data["id"], client)}


@router.delete("/devices/{device_id}", status_code=204)
async def remove_trusted_device(
    device_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: TrustedDeviceService = Depends(get_trusted_device_service)
):
    service.remove_trusted_device(user_data["id"], device_id)
    return None


@router.post("/validate/email", response_model=EmailValidationResponse)
async def check_email(request: EmailValidationRequest):
    return validate_email(request.email)


@router.post("/validate/password", response_model=PasswordValidationResponse)
async def check_password(request: PasswordValidationRequest):
    return validate_password(request.password)
