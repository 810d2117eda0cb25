from fastapi import APIRouter, Depends
from api.dependencies import get_account_manager, get_current_account
from schemas.account_schema import AccountSummary
from services.account_service import AccountLifecycleManager
from utils.responses import success_json

router = APIRouter()

def _text(payload: dict, name: str, strip: bool = True) -> str:
    value = payload.get(name)
    if value is None:
        return ""
    value = str(value)
    return value.strip() if strip else value

@router.post("/signup")
async def signup(payload: dict, manager: AccountLifecycleManager = Depends(get_account_manager)):
    account = await manager.register(
        _text(payload, "name"),
        _text(payload, "email"),
        _text(payload, "password", strip=False),
    )
    return success_json(
        "Registration successful. OTP sent to your email.",
        data=account.model_dump(),
        status_code=201,
    )

@router.post("/verify-otp")
async def verify_otp(payload: dict, manager: AccountLifecycleManager = Depends(get_account_manager)):
    result = await manager.verify_otp(_text(payload, "email"), _text(payload, "otp"))
    return success_json("Email verified successfully", data=result.model_dump())

@router.post("/login")
async def login(payload: dict, manager: AccountLifecycleManager = Depends(get_account_manager)):
    result = await manager.login(_text(payload, "email"), _text(payload, "password", strip=False))
    return success_json("Login successful", data=result.model_dump())

@router.post("/forgot-password")
async def forgot_password(payload: dict, manager: AccountLifecycleManager = Depends(get_account_manager)):
    return success_json(await manager.forgot_password(_text(payload, "email")))

@router.post("/reset-password")
async def reset_password(payload: dict, manager: AccountLifecycleManager = Depends(get_account_manager)):
    message = await manager.reset_password(
        _text(payload, "email"),
        _text(payload, "otp"),
        _text(payload, "new_password", strip=False),
    )
    return success_json(message)

@router.post("/resend-otp")
async def resend_otp(payload: dict, manager: AccountLifecycleManager = Depends(get_account_manager)):
    return success_json(await manager.resend_otp(_text(payload, "email")))

@router.get("/profile")
async def profile(current_account: AccountSummary = Depends(get_current_account)):
    return success_json("Profile retrieved", data={"account": current_account.model_dump()})
