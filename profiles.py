"""
=============================================================================
PROFILES.PY — Documentos de perfil alrededor del login
=============================================================================
En el login se crea el perfil privado si falta. Un alumno dado de alta por
un profesor ya tiene espejo público; su copia privada parte de él para no
perder nada de lo que ve el profesor. Los logins siguientes nunca
reinician el progreso.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from database import scoped
from models import (
    Account, Profile, PublicStudentProfile, Role, initial_skills,
    profile_to_dict, PROFILE_FIELDS,
)

logger = logging.getLogger("growth.profiles")


def get_profile(db: Session, user_id: str):
    return scoped(db, Profile).filter(Profile.user_id == user_id).first()


def get_public_profile(db: Session, user_id: str):
    return scoped(db, PublicStudentProfile).filter(PublicStudentProfile.user_id == user_id).first()


def new_profile_data(user_id: str, display_name: str, role: str) -> dict:
    now = datetime.utcnow()
    return {
        "user_id": user_id,
        "role": role,
        "display_name": display_name,
        "xp": 0,
        "gold": 0,
        "level": 1,
        "skills": initial_skills(),
        "is_deleted": False,
        "created_at": now,
        "last_update": now,
    }


def _fill(row, data: dict):
    for field in PROFILE_FIELDS:
        setattr(row, field, data[field])
    return row


def create_public_profile(db: Session, user_id: str, display_name: str) -> PublicStudentProfile:
    """Espejo inicial de un alumno dado de alta por un profesor (sin commit)"""
    mirror = _fill(PublicStudentProfile(), new_profile_data(user_id, display_name, Role.student.value))
    db.add(mirror)
    return mirror


def ensure_profiles(db: Session, account: Account) -> Profile:
    """Crea el perfil privado si falta y refresca el espejo del alumno"""
    profile = get_profile(db, account.user_id)
    mirror = get_public_profile(db, account.user_id)

    if profile is None:
        if mirror is not None:
            data = profile_to_dict(mirror)
            data.update(role=account.role, display_name=account.display_name, is_deleted=False)
        else:
            data = new_profile_data(account.user_id, account.display_name, account.role)
        profile = _fill(Profile(), data)
        db.add(profile)
        logger.info(f"👤 Perfil creado: {account.display_name} ({account.role})")

    if account.role == Role.student.value:
        if mirror is None:
            mirror = PublicStudentProfile()
            db.add(mirror)
        _fill(mirror, {**profile_to_dict(profile), "is_deleted": False, "last_update": datetime.utcnow()})

    db.commit()
    db.refresh(profile)
    return profile
