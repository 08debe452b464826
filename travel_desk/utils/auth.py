import asyncio
from datetime import timedelta
from typing import Optional
from concurrent.futures import ThreadPoolExecutor

from jose import JWTError, jwt
from passlib.context import CryptContext

from travel_desk.utils.time_utils import utc_now

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt 연산은 CPU 바운드이므로 스레드 풀에서 실행
_executor = ThreadPoolExecutor(max_workers=4)

SESSION_TOKEN_TYPE = "session"


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


async def verify_password_async(plain_password: str, hashed_password: str) -> bool:
    """Async password verification - offloads bcrypt to thread pool"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        _executor, pwd_context.verify, plain_password, hashed_password
    )


async def get_password_hash_async(password: str) -> str:
    """Async password hashing - offloads bcrypt to thread pool"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_executor, pwd_context.hash, password)


def create_session_token(
    session_id: str,
    secret_key: str,
    algorithm: str,
    expires_delta: timedelta
) -> str:
    """세션 ID 를 서명된 쿠키 값으로 변환"""
    to_encode = {
        "sid": session_id,
        "type": SESSION_TOKEN_TYPE,
        "exp": utc_now() + expires_delta,
    }
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_session_token(token: str, secret_key: str, algorithm: str) -> Optional[str]:
    """서명된 쿠키 값에서 세션 ID 추출 (위조/만료 시 None)"""
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError:
        return None

    if payload.get("type") != SESSION_TOKEN_TYPE:
        return None
    return payload.get("sid")
