import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional

import jwt
from fastapi import APIRouter, Depends, Form, HTTPException
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from pydantic import BaseModel, Field

from config import settings
from model import User

logger = logging.getLogger(__name__)

# 路由
router = APIRouter()

# 密码加密
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# OAuth2 方案
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


class UserTypeEnum(str, Enum):
    sales = "sales"
    finance = "finance"
    admin = "admin"


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6)
    user_type: UserTypeEnum


class OAuth2TokenResponse(BaseModel):
    access_token: str
    token_type: str
    message: Optional[str] = None
    user: Optional[dict] = None


# JWT 工具函数
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_password(plain_password, hashed_password):
    """验证密码"""
    if not hashed_password or not hashed_password.startswith("$2b$"):
        raise HTTPException(status_code=500, detail="Invalid password hash format")
    return pwd_context.verify(plain_password, hashed_password)


async def get_user(username: str):
    """获取用户信息"""
    return await User.filter(username=username).first().values()


async def authenticate_user(username: str, password: str):
    """用户认证"""
    user = await get_user(username)
    if not user:
        return False
    if not verify_password(password, user["hashed_password"]):
        return False
    return user


async def get_current_user(token: str = Depends(oauth2_scheme)):
    """获取当前认证用户（基于 JWT）"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    username: str = payload.get("sub")
    if username is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = await get_user(username)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user["is_active"]:
        raise HTTPException(status_code=400, detail="Account disabled")
    return user


def require_roles_dep(allowed_roles: List[str]):
    """角色校验依赖，admin 拥有全部权限"""
    async def dependency(current_user: dict = Depends(get_current_user)):
        if current_user["user_type"] == UserTypeEnum.admin.value or current_user["user_type"] in allowed_roles:
            return current_user
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return dependency


admin_only = require_roles_dep([])
sales_or_finance = require_roles_dep([UserTypeEnum.sales.value, UserTypeEnum.finance.value])
finance_only = require_roles_dep([UserTypeEnum.finance.value])


def public_user(user: dict) -> dict:
    return {key: value for key, value in user.items() if key != "hashed_password"}


# 用户登录 API
@router.post("/login", response_model=OAuth2TokenResponse)
async def login(username: str = Form(...), password: str = Form(...)):
    user = await authenticate_user(username, password)
    if not user:
        logger.info("用户 %s 登录失败", username)
        raise HTTPException(status_code=401, detail="Incorrect username or password")
    if not user["is_active"]:
        raise HTTPException(status_code=400, detail="Account disabled")
    access_token = create_access_token(data={"sub": user["username"]})

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "message": "Login successful",
        "user": public_user(user),
    }


# 创建用户 API
@router.post("/create_user", status_code=201)
async def create_user(user: UserCreate, current_user: dict = Depends(admin_only)):
    if await User.filter(username=user.username).exists():
        raise HTTPException(status_code=400, detail="Username already exists")
    hashed_password = pwd_context.hash(user.password)
    new_user = await User.create(
        username=user.username,
        hashed_password=hashed_password,
        user_type=user.user_type.value,
    )
    logger.info("%s 创建了用户 %s", current_user["username"], new_user.username)
    return {"message": "User created successfully", "user_id": new_user.id}


# 删除用户 API
@router.delete("/delete_user/{username}")
async def delete_user(username: str, current_user: dict = Depends(admin_only)):
    user = await User.get_or_none(username=username)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    await user.delete()
    logger.info("%s 删除了用户 %s", current_user["username"], username)
    return {"message": "User deleted successfully"}
