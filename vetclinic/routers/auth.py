from fastapi import APIRouter, Depends, HTTPException, status

from .. import schemas
from ..auth import ADMIN_ROLE, create_access_token, get_current_admin, get_current_user, verify_password
from ..telegram_service import telegram_notifier

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

@router.post("/admin/login", response_model=schemas.LoginResponse)
def admin_login(login_data: schemas.LoginRequest):
    """Admin sign-in"""
    if not verify_password(login_data.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Wrong password"
        )

    access_token = create_access_token(data={"role": ADMIN_ROLE, "sub": ADMIN_ROLE})
    return schemas.LoginResponse(access_token=access_token)

@router.get("/me")
def whoami(user: dict = Depends(get_current_user)):
    """Claims of the current token"""
    return {"role": user.get("role"), "sub": user.get("sub")}

@router.post("/admin/test-telegram")
async def test_telegram(admin: dict = Depends(get_current_admin)):
    """Send a test Telegram message (admins only)"""
    if not telegram_notifier.admin_chat_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Telegram chat ids are not configured. Set TELEGRAM_ADMIN_CHAT_IDS in .env"
        )

    success = False
    for chat_id in telegram_notifier.admin_chat_ids:
        result = await telegram_notifier.send_test_message(chat_id)
        if result:
            success = True

    if success:
        return {"message": "Test message sent successfully!"}
    else:
        raise HTTPException(status_code=500, detail="Could not send the message")
