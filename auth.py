"""
=============================================================================
AUTH.PY — Sistema de Autenticación
=============================================================================
Maneja:
  - El almacén de credenciales (nombre visible + código numérico, con bcrypt)
  - Creación y verificación de tokens JWT de sesión
  - Obtener el usuario actual a partir del token

Flujo de login:
  1. El usuario envía nombre visible + código
  2. verify_credentials() los compara con la tabla de cuentas
  3. Si es su primer login se crea el perfil privado
  4. Se devuelve un JWT con su user_id, que se envía en cada petición

Una cuenta desactivada (alumno dado de baja por el profesor) ya no puede
hacer login, y los tokens que tenía dejan de valer.
"""

import os
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from database import get_db, scoped
from models import Account, Profile, Role

# ─────────────────────────────────────────────────────────────────────────────
# CONFIGURACIÓN
# ─────────────────────────────────────────────────────────────────────────────

SECRET_KEY = os.getenv("SECRET_KEY", "growth-dev-secret-key-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = 30

LOGIN_ERROR = "잘못된 ID 또는 비밀번호입니다."

# Lista de demo que se inserta al primer arranque (los códigos se guardan hasheados)
DEFAULT_ACCOUNTS = [
    ("김대수", "1024", Role.student), ("김주한", "0623", Role.student),
    ("김차영", "0630", Role.student), ("김태린", "0609", Role.student),
    ("김혜지", "1029", Role.student), ("안준희", "1207", Role.student),
    ("인선우", "1010", Role.student), ("정군", "0420", Role.student),
    ("정유이", "0609", Role.student), ("최지음", "0820", Role.student),
    ("박초", "1022", Role.student),
    ("교사", "5555", Role.teacher),
]

# ─────────────────────────────────────────────────────────────────────────────
# HASHING
# ─────────────────────────────────────────────────────────────────────────────

def hash_secret(secret: str) -> str:
    return bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_secret(plain_secret: str, secret_hash: str) -> bool:
    return bcrypt.checkpw(plain_secret.encode("utf-8"), secret_hash.encode("utf-8"))


# ─────────────────────────────────────────────────────────────────────────────
# ALMACÉN DE CREDENCIALES
# ─────────────────────────────────────────────────────────────────────────────

def find_account(db: Session, display_name: str) -> Optional[Account]:
    return scoped(db, Account).filter(Account.display_name == display_name).first()


def find_account_by_user_id(db: Session, user_id: str) -> Optional[Account]:
    return scoped(db, Account).filter(Account.user_id == user_id).first()


def create_account(db: Session, display_name: str, secret: str, role: Role = Role.student,
                   user_id: str = None) -> Account:
    """Añade una cuenta (sin commit). Lanza ValueError si el nombre ya existe"""
    if find_account(db, display_name) is not None:
        raise ValueError(f"Account '{display_name}' already exists")
    account = Account(
        display_name=display_name,
        secret_hash=hash_secret(secret),
        role=role.value,
    )
    if user_id:
        account.user_id = user_id
    db.add(account)
    db.flush()
    return account


def verify_credentials(db: Session, display_name: str, secret: str) -> Optional[Account]:
    """Devuelve la cuenta activa con ese nombre + código, o None"""
    account = find_account(db, display_name)
    if account is None or not account.active:
        return None
    if not check_secret(secret, account.secret_hash):
        return None
    return account


def seed_accounts(db: Session):
    """Inserta la lista de demo; las cuentas que ya existen no se tocan"""
    added = 0
    for display_name, secret, role in DEFAULT_ACCOUNTS:
        if find_account(db, display_name) is None:
            create_account(db, display_name, secret, role)
            added += 1
    db.commit()
    return added


# ─────────────────────────────────────────────────────────────────────────────
# JWT
# ─────────────────────────────────────────────────────────────────────────────

def create_access_token(user_id: str, role: str) -> str:
    """Token firmado con el id del usuario (sub), su rol y la expiración"""
    expire = datetime.utcnow() + timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)
    to_encode = {"sub": user_id, "role": role, "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Payload del token, o None si es inválido o ha expirado"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


# ─────────────────────────────────────────────────────────────────────────────
# DEPENDENCIAS
# ─────────────────────────────────────────────────────────────────────────────

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Profile:
    """Perfil privado del dueño del token (su cuenta debe seguir activa)"""
    payload = decode_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"}
        )

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has no user id"
        )

    account = find_account_by_user_id(db, user_id)
    if account is None or not account.active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account disabled",
            headers={"WWW-Authenticate": "Bearer"}
        )

    profile = scoped(db, Profile).filter(Profile.user_id == user_id).first()
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return profile


async def require_teacher(user: Profile = Depends(get_current_user)) -> Profile:
    if user.role != Role.teacher.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Teachers only")
    return user


async def require_student(user: Profile = Depends(get_current_user)) -> Profile:
    if user.role != Role.student.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Students only")
    return user
