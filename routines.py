"""
=============================================================================
ROUTINES.PY — Rutinas personalizadas y su cumplimiento diario
=============================================================================
Una rutina se aplica algunos días de la semana ("월", "수", "금"), pero el
cumplimiento se guarda por fecha de calendario:

  completed_days = {"2026-10-19": true, "2026-10-26": false}

así el lunes pasado y este lunes son entradas distintas. Marcar una fecha
que aún no estaba marcada paga la recompensa de rutina una vez; desmarcar,
o volver a marcar, no paga nada.
"""

import logging
import os
from datetime import date, datetime

import pytz
from sqlalchemy.orm import Session

from database import scoped
from models import CustomRoutine
from progression import REWARDS, update_student_profile

logger = logging.getLogger("growth.routines")

APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Seoul")

WEEKDAYS = ["월", "화", "수", "목", "금", "토", "일"]
# Mismo orden que date.weekday(): lunes = 0


def today(tz_name: str = None) -> date:
    """Fecha de hoy en la zona horaria del colegio"""
    return datetime.now(pytz.timezone(tz_name or APP_TIMEZONE)).date()


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def applies_on(routine: CustomRoutine, day: date) -> bool:
    """True si la rutina toca el día de la semana de `day`"""
    return weekday_name(day) in (routine.days or [])


def create_routine(db: Session, user_id: str, title: str, days: list[str], time: str) -> CustomRoutine:
    title = (title or "").strip()
    time = (time or "").strip()
    if not title or not time:
        raise ValueError("Routine title and time are required")
    if not days or any(day not in WEEKDAYS for day in days):
        raise ValueError(f"Routine days must be a non-empty subset of {WEEKDAYS}")

    # Orden de calendario, da igual en qué orden se eligieron
    ordered_days = [day for day in WEEKDAYS if day in set(days)]

    routine = CustomRoutine(
        user_id=user_id,
        title=title,
        days=ordered_days,
        time=time,
        completed_days={},
        created_at=datetime.utcnow(),
    )
    db.add(routine)
    db.commit()
    db.refresh(routine)
    logger.info(f"➕ Rutina creada: {routine.title} (usuario: {user_id})")
    return routine


def get_routine(db: Session, user_id: str, routine_id: str):
    return scoped(db, CustomRoutine).filter(
        CustomRoutine.id == routine_id, CustomRoutine.user_id == user_id
    ).first()


def list_routines(db: Session, user_id: str, on_date: date = None) -> list[CustomRoutine]:
    """Rutinas de un usuario, las más antiguas primero; solo las de `on_date` si se indica"""
    routines = scoped(db, CustomRoutine).filter(
        CustomRoutine.user_id == user_id
    ).order_by(CustomRoutine.created_at, CustomRoutine.id).all()
    if on_date is not None:
        routines = [r for r in routines if applies_on(r, on_date)]
    return routines


def toggle_completion(db: Session, user_id: str, routine_id: str, checked: bool, on_date: date = None):
    """
    Registra si la rutina se hizo en `on_date` (por defecto: hoy).

    Devuelve (routine, rewarded), o (None, False) si la rutina no existe.
    """
    routine = get_routine(db, user_id, routine_id)
    if routine is None:
        return None, False

    key = (on_date or today()).isoformat()
    was_completed = bool((routine.completed_days or {}).get(key))

    # Se reasigna el dict para que SQLAlchemy detecte el cambio en la columna JSON
    routine.completed_days = {**(routine.completed_days or {}), key: checked}
    db.commit()
    db.refresh(routine)

    rewarded = False
    if checked and not was_completed:
        rewarded = update_student_profile(db, user_id, REWARDS["routine_complete"], user_id) is not None
        logger.info(f"🔁 Rutina '{routine.title}' hecha el {key} (usuario: {user_id})")

    return routine, rewarded


def delete_routine(db: Session, user_id: str, routine_id: str) -> bool:
    routine = get_routine(db, user_id, routine_id)
    if routine is None:
        return False
    title = routine.title
    db.delete(routine)
    db.commit()
    logger.info(f"🗑️ Rutina eliminada: {title} (usuario: {user_id})")
    return True
