from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class TwoFactorSetupResponse(BaseModel):
    secret: str
    provisioning_uri: str
    qr_code_url: str
    backup_codes: List[str]

    class Config:
        from_attributes = True


class TwoFactorVerifyRequest(BaseModel):
    token: str


class TwoFactorVerifyResponse(BaseModel):
    valid: bool


class TwoFactorStatusResponse(BaseModel):
    configured: bool
    enabled: bool
    backup_codes_remaining: int = 0
    last_verified: Optional[datetime] = None

    class Config:
        from_attributes = True


class BackupCodesResponse(BaseModel):
    backup_codes: List[str]


class TrustDeviceRequest(BaseModel):
    name: Optional[str] = None


class TrustedDeviceResponse(BaseModel):
    id: str
    name: str
    last_used: datetime
    user_agent: str
    ip_address: str
    expires_at: datetime
    is_current: bool = False

    class Config:
        from_attributes = True


class DeviceTrustStatusResponse(BaseModel):
    trusted: bool


class EmailValidationRequest(BaseModel):
    email: str


class EmailValidationResponse(BaseModel):
    valid: bool
    reason: Optional[str] = None

    class Config:
        from_attributes = True


class PasswordValidationRequest(BaseModel):
    password: str


class PasswordValidationResponse(BaseModel):
    valid: bool
    score: int
    feedback: List[str]

    class Config:
        from_attributes = True
