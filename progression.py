"""
=============================================================================
PROGRESSION.PY — XP, oro, niveles y habilidades
=============================================================================
Maneja:
  - Aplicar una recompensa (XP, oro, puntos de habilidad) a un snapshot
  - La curva de niveles (salir del nivel L necesita L * 100 XP en total)
  - Guardar el resultado en el perfil privado y en su espejo público

apply_reward() es pura: recibe un dict y devuelve otro nuevo.
update_student_profile() es la parte que toca la base de datos.

¿Quién escribe qué?
  - El espejo público se escribe SIEMPRE.
  - La copia privada solo cuando el dueño actualiza su propio perfil.
  Las dos escrituras van en la misma transacción: o entran las dos o ninguna.

En un espejo que ya existe solo se escriben los campos de progreso
(PROGRESS_FIELDS); su is_deleted y su nombre no los toca una recompensa.
"""

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import scoped
from models import (
    Profile, PublicStudentProfile, profile_to_dict, PROFILE_FIELDS, PROGRESS_FIELDS,
    SKILL_LITERACY, SKILL_CREATIVITY, SKILL_PROBLEM_SOLVING,
    SKILL_SELF_DIRECTED, SKILL_RESPONSIBILITY,
)

logger = logging.getLogger("growth.progression")


# =============================================================================
# ===================== SISTEMA DE NIVELES ====================================
# =============================================================================
# Umbral para salir del nivel L: L * 100 XP totales.
# Nivel 1 → 100 XP, Nivel 2 → 200 XP, Nivel 10 → 1000 XP...

def xp_for_next_level(level: int) -> int:
    """XP total necesario para salir de `level`"""
    return level * 100


def level_progress(profile: dict) -> dict:
    """Dónde está el perfil dentro de la franja de su nivel actual"""
    level = profile.get("level") or 1
    xp = profile.get("xp") or 0
    floor = xp_for_next_level(level - 1)
    ceiling = xp_for_next_level(level)
    band = ceiling - floor
    in_band = min(max(xp - floor, 0), band)
    return {
        "level": level,
        "xp": xp,
        "xp_next_level": ceiling,
        "xp_to_next_level": max(ceiling - xp, 0),
        "xp_progress": round(in_band / band * 100, 1) if band > 0 else 100,
    }


# =============================================================================
# ===================== RECOMPENSAS ===========================================
# =============================================================================

# Recompensas fijas por acción
REWARDS = {
    "journal_entry": {"xp": 10, "gold": 5, "skills": {SKILL_LITERACY: 5, SKILL_CREATIVITY: 5}},
    "quiz_correct": {"skills": {SKILL_PROBLEM_SOLVING: 15}},
    "routine_complete": {"skills": {SKILL_SELF_DIRECTED: 10, SKILL_RESPONSIBILITY: 5}},
}


def _check_delta(delta: dict):
    for key in ("xp", "gold"):
        if (delta.get(key) or 0) < 0:
            raise ValueError(f"Reward '{key}' must be non-negative")
    for skill, points in (delta.get("skills") or {}).items():
        if (points or 0) < 0:
            raise ValueError(f"Reward for skill '{skill}' must be non-negative")


def apply_reward(profile: dict, delta: dict) -> dict:
    """
    Aplica una recompensa a un snapshot de perfil y devuelve el nuevo snapshot.

    delta:
      {"xp": 10, "gold": 5, "skills": {"문해력": 5}}   (todas las claves opcionales)

    Solo cambian xp, gold, level, skills y last_update. El nivel parte del
    actual y sube mientras xp >= level * 100; nunca baja.
    """
    _check_delta(delta)

    new_xp = (profile.get("xp") or 0) + (delta.get("xp") or 0)
    new_gold = (profile.get("gold") or 0) + (delta.get("gold") or 0)

    new_level = profile.get("level") or 1
    while new_xp >= xp_for_next_level(new_level):
        new_level += 1

    new_skills = dict(profile.get("skills") or {})
    for skill, points in (delta.get("skills") or {}).items():
        new_skills[skill] = new_skills.get(skill, 0) + (points or 0)

    return {
        **profile,
        "xp": new_xp,
        "gold": new_gold,
        "level": new_level,
        "skills": new_skills,
        "last_update": datetime.utcnow(),
    }


# =============================================================================
# ===================== PERSISTENCIA ==========================================
# =============================================================================

def _write(row, snapshot: dict, fields=PROFILE_FIELDS):
    for field in fields:
        if field == "user_id":
            continue
        setattr(row, field, snapshot[field])


def stage_reward(db: Session, user_id_to_update: str, delta: dict, updater_id: str):
    """
    Igual que update_student_profile() pero sin commit, para que quien llama
    pueda meter la recompensa en su propia transacción.

    Devuelve el nuevo snapshot, o None si el perfil de origen no existe.
    """
    is_owner = user_id_to_update == updater_id
    source_model = Profile if is_owner else PublicStudentProfile
    source = scoped(db, source_model).filter(
        source_model.user_id == user_id_to_update
    ).first()

    if source is None:
        logger.error(
            f"❌ No se puede actualizar el perfil {user_id_to_update}: "
            f"no existe el documento de origen ({source_model.__tablename__})"
        )
        return None

    updated = apply_reward(profile_to_dict(source), delta)

    mirror = scoped(db, PublicStudentProfile).filter(
        PublicStudentProfile.user_id == user_id_to_update
    ).first()
    if mirror is None:
        mirror = PublicStudentProfile(user_id=user_id_to_update)
        db.add(mirror)
        _write(mirror, updated)
    else:
        _write(mirror, updated, PROGRESS_FIELDS)

    if is_owner:
        _write(source, updated, PROGRESS_FIELDS)

    return updated


def update_student_profile(db: Session, user_id_to_update: str, delta: dict, updater_id: str):
    """
    Aplica `delta` al perfil de un alumno y lo guarda.

    Si falta el perfil o falla la escritura, se registra en el log y se
    devuelve None; quien llama lo trata como recompensa omitida.
    """
    try:
        updated = stage_reward(db, user_id_to_update, delta, updater_id)
        if updated is None:
            db.rollback()
            return None
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Error actualizando el perfil {user_id_to_update}: {e}")
        return None

    logger.info(
        f"⭐ Perfil {user_id_to_update} → nivel {updated['level']}, "
        f"{updated['xp']} XP, {updated['gold']} oro"
    )
    return updated
