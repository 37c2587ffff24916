"""
=============================================================================
TEACHER.PY — Servicios del panel del profesor
=============================================================================
  - Lista de alumnos: cada cuenta de alumno activa, unida a su perfil público
  - Dar de alta / de baja alumnos
  - Informe de análisis con IA para un alumno
"""

import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from auth import create_account, find_account_by_user_id
from content import ANALYSIS_SCHEMA, ANALYSIS_ERROR, analysis_prompt
from database import scoped
from genai_client import GenerationError
from missions import list_missions
from models import Account, PublicStudentProfile, Role, new_id
from profiles import create_public_profile, get_public_profile
from schemas import AnalysisReport

logger = logging.getLogger("growth.teacher")


def list_students(db: Session) -> list[dict]:
    """
    Una entrada por cuenta de alumno activa, ordenadas por nombre.

    Las cuentas cuyo alumno nunca hizo login (y que no se dieron de alta
    desde el panel) aún no tienen perfil público: salen como placeholder
    con nivel 0. Los perfiles borrados (soft delete) no se muestran.
    """
    accounts = scoped(db, Account).filter(
        Account.role == Role.student.value, Account.active == True
    ).order_by(Account.display_name).all()

    mirrors = {
        m.display_name: m for m in scoped(db, PublicStudentProfile).all()
    }

    missions_by_student = {}
    for mission in list_missions(db):
        missions_by_student.setdefault(mission.student_id, []).append(mission)

    students = []
    for account in accounts:
        mirror = mirrors.get(account.display_name)
        if mirror is not None and mirror.is_deleted:
            continue

        if mirror is None:
            student = {
                "id": f"placeholder_{account.display_name}",
                "display_name": account.display_name,
                "level": 0, "xp": 0, "gold": 0, "skills": {},
                "from_store": False,
            }
        else:
            student = {
                "id": mirror.user_id,
                "display_name": mirror.display_name,
                "level": mirror.level, "xp": mirror.xp, "gold": mirror.gold,
                "skills": dict(mirror.skills or {}),
                "from_store": True,
            }

        missions = missions_by_student.get(student["id"], [])
        student["missions"] = missions
        student["completed_missions"] = sum(1 for m in missions if m.is_completed)
        students.append(student)

    return students


def add_student(db: Session, display_name: str, code: str) -> PublicStudentProfile:
    """
    Crea la cuenta del alumno y su perfil público inicial.
    Lanza ValueError si el nombre ya está en uso.
    """
    display_name = display_name.strip()
    user_id = f"student_{new_id()}"
    create_account(db, display_name, code, Role.student, user_id=user_id)
    mirror = create_public_profile(db, user_id, display_name)
    db.commit()
    db.refresh(mirror)
    logger.info(f"👤 Alumno añadido: {display_name}")
    return mirror


def delete_student(db: Session, student_id: str) -> bool:
    """Oculta al alumno de la lista y desactiva su cuenta (login y tokens)"""
    mirror = get_public_profile(db, student_id)
    if mirror is None:
        return False

    mirror.is_deleted = True
    account = find_account_by_user_id(db, student_id)
    if account is not None:
        account.active = False
    db.commit()
    logger.info(f"🗑️ Alumno dado de baja: {mirror.display_name}")
    return True


def generate_analysis(client, student: dict, missions: list, period: str = "weekly") -> dict:
    """
    Pide al modelo un informe de progreso del alumno.

    Nunca lanza excepciones: ante cualquier fallo devuelve un informe que
    solo lleva el resumen de error.
    """
    completed = sum(1 for m in missions if m.is_completed)
    try:
        raw = client.generate_structured(analysis_prompt(student, completed, period), ANALYSIS_SCHEMA)
        report = AnalysisReport.model_validate(raw)
    except (GenerationError, ValidationError) as e:
        logger.error(f"❌ Análisis de {student.get('display_name')} fallido: {e}")
        return {"summary": ANALYSIS_ERROR}

    logger.info(f"📊 Análisis generado para {student.get('display_name')} ({period})")
    return report.model_dump()
