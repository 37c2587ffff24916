"""
=============================================================================
MISSIONS.PY — Ciclo de vida de las misiones y liquidación de recompensas
=============================================================================
Una misión avanza por una máquina de estados explícita:

  created ──→ pending_approval ──→ completed ──→ rewarded
     └──────────────────────────────↗   │
     ↖──────────────────────────────────┘  (el profesor desmarca antes del pago)

  rewarded es final.

La liquidación (pagar el XP, oro y habilidades de la misión) va protegida
por una escritura condicional: el estado solo pasa de completed → rewarded
si sigue en "completed" al escribir, y la recompensa se prepara en la misma
transacción. Una segunda liquidación de la misma misión no encuentra filas
y no paga nada.
"""

import logging
from datetime import datetime

from pydantic import ValidationError
from sqlalchemy.orm import Session

from database import scoped
from models import (
    Mission, MissionState, MissionCategory,
    SKILL_RESPONSIBILITY, SKILL_LITERACY, SKILL_NUMERACY,
)
from progression import stage_reward
from content import MISSION_SCHEMA, daily_missions_prompt
from schemas import GeneratedMission

logger = logging.getLogger("growth.missions")


class InvalidMissionTransition(Exception):
    """Se lanza cuando se pide a una misión pasar a un estado al que no puede llegar"""

    def __init__(self, mission_id: str, current: str, target: str):
        super().__init__(f"Mission {mission_id}: {current} → {target} is not allowed")
        self.mission_id = mission_id
        self.current = current
        self.target = target


# =============================================================================
# ===================== MÁQUINA DE ESTADOS =====================================
# =============================================================================

TRANSITIONS = {
    MissionState.created: {MissionState.pending_approval, MissionState.completed},
    MissionState.pending_approval: {MissionState.completed, MissionState.created},
    MissionState.completed: {MissionState.rewarded, MissionState.created},
    MissionState.rewarded: set(),
}


def transition(mission: Mission, target: MissionState) -> Mission:
    """Mueve `mission` a `target` (en memoria) o lanza InvalidMissionTransition"""
    current = MissionState(mission.state)
    if target not in TRANSITIONS[current]:
        raise InvalidMissionTransition(mission.id, current.value, target.value)

    now = datetime.utcnow()
    mission.state = target.value
    if target == MissionState.pending_approval:
        mission.requested_at = now
    elif target == MissionState.completed:
        mission.completed_at = now
    elif target == MissionState.created:
        mission.completed_at = None
    return mission


# =============================================================================
# ===================== CONSULTAS =============================================
# =============================================================================

def get_mission(db: Session, mission_id: str, student_id: str = None):
    query = scoped(db, Mission).filter(Mission.id == mission_id)
    if student_id is not None:
        query = query.filter(Mission.student_id == student_id)
    return query.first()


def list_missions(db: Session, student_id: str = None) -> list[Mission]:
    """Misiones de un alumno (o de todos), las más antiguas primero"""
    query = scoped(db, Mission)
    if student_id is not None:
        query = query.filter(Mission.student_id == student_id)
    return query.order_by(Mission.generated_at, Mission.id).all()


# =============================================================================
# ===================== LIQUIDACIÓN ===========================================
# =============================================================================

def skill_delta_for(category: str) -> dict:
    """Puntos de habilidad que da una misión liquidada, según su categoría"""
    skills = {SKILL_RESPONSIBILITY: 5}
    if category in (MissionCategory.reading.value, MissionCategory.writing.value):
        skills[SKILL_LITERACY] = 10
    elif category in (MissionCategory.math.value, MissionCategory.problem_solving.value):
        skills[SKILL_NUMERACY] = 10
    return skills


def settle_mission(db: Session, mission_id: str, student_id: str, updater_id: str) -> bool:
    """
    Paga una misión completada exactamente una vez.

    Devuelve True si esta llamada pagó la recompensa, False si la misión no
    estaba (o ya no está) en completed, o si falta el perfil.
    """
    mission = get_mission(db, mission_id, student_id)
    if mission is None or mission.state != MissionState.completed.value:
        return False

    reward = {
        "xp": mission.reward_xp or 0,
        "gold": mission.reward_gold or 0,
        "skills": skill_delta_for(mission.category),
    }

    claimed = scoped(db, Mission).filter(
        Mission.id == mission_id,
        Mission.state == MissionState.completed.value,
    ).update(
        {Mission.state: MissionState.rewarded.value, Mission.rewarded_at: datetime.utcnow()},
        synchronize_session=False,
    )
    if claimed != 1:
        db.rollback()
        logger.info(f"↩️ Misión {mission_id} ya liquidada, se omite")
        return False

    if stage_reward(db, student_id, reward, updater_id) is None:
        db.rollback()
        return False

    db.commit()
    db.expire(mission)
    logger.info(f"🎁 Misión liquidada: '{mission.title}' (alumno: {student_id})")
    return True


def settle_pending_rewards(db: Session, student_id: str) -> int:
    """Liquida todas las misiones completadas de un alumno, actuando como él"""
    completed = scoped(db, Mission).filter(
        Mission.student_id == student_id,
        Mission.state == MissionState.completed.value,
    ).all()

    settled = 0
    for mission in completed:
        try:
            if settle_mission(db, mission.id, student_id, student_id):
                settled += 1
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Error liquidando la misión {mission.id}: {e}")
    return settled


def settle_all_completed(db: Session) -> int:
    """Barrido del scheduler: liquida las misiones completadas de todos los alumnos"""
    student_ids = [
        row[0] for row in scoped(db, Mission).with_entities(Mission.student_id).filter(
            Mission.state == MissionState.completed.value
        ).distinct().all()
    ]
    return sum(settle_pending_rewards(db, student_id) for student_id in student_ids)


# =============================================================================
# ===================== ACCIONES DEL ALUMNO ===================================
# =============================================================================

def request_completion(db: Session, mission_id: str, student_id: str):
    """El alumno marca una misión como hecha; un profesor debe aprobarla"""
    mission = get_mission(db, mission_id, student_id)
    if mission is None:
        return None
    transition(mission, MissionState.pending_approval)
    db.commit()
    db.refresh(mission)
    logger.info(f"🙋 Aprobación solicitada: '{mission.title}' (alumno: {student_id})")
    return mission


def parse_generated_missions(raw) -> list[GeneratedMission]:
    """Se queda con los elementos bien formados de la respuesta del modelo"""
    if not isinstance(raw, list):
        return []
    missions = []
    for item in raw:
        try:
            missions.append(GeneratedMission.model_validate(item))
        except ValidationError as e:
            logger.warning(f"⚠️ Misión generada mal formada descartada: {e.error_count()} errores")
    return missions


def generate_daily_missions(db: Session, client, student_id: str, level: int) -> list[Mission]:
    """
    Pide al modelo las misiones de hoy y sustituye con ellas las misiones
    sin completar del alumno.

    GenerationError se propaga; si la respuesta viene vacía no se sustituye nada.
    """
    raw = client.generate_structured(daily_missions_prompt(level), MISSION_SCHEMA)
    generated = parse_generated_missions(raw)
    if not generated:
        logger.warning(f"⚠️ El modelo no devolvió misiones válidas para {student_id}")
        return []

    scoped(db, Mission).filter(
        Mission.student_id == student_id,
        Mission.state.in_([MissionState.created.value, MissionState.pending_approval.value]),
    ).delete(synchronize_session=False)

    created = [_new_mission(student_id, item) for item in generated]
    db.add_all(created)
    db.commit()
    for mission in created:
        db.refresh(mission)

    logger.info(f"✨ {len(created)} misiones generadas (alumno: {student_id})")
    return created


def _new_mission(student_id: str, item: GeneratedMission, recommended: bool = False) -> Mission:
    return Mission(
        student_id=student_id,
        title=item.title,
        category=item.category.value,
        description=item.description,
        reward_xp=item.reward_xp,
        reward_gold=item.reward_gold,
        state=MissionState.created.value,
        is_recommended=recommended,
        generated_at=datetime.utcnow(),
    )


# =============================================================================
# ===================== ACCIONES DEL PROFESOR =================================
# =============================================================================

def toggle_completion(db: Session, mission_id: str):
    """
    Casilla del profesor: completa una misión abierta, o reabre una completada
    que aún no se ha pagado. Una misión ya recompensada no se puede cambiar.
    """
    mission = get_mission(db, mission_id)
    if mission is None:
        return None

    if mission.state == MissionState.completed.value:
        transition(mission, MissionState.created)
    else:
        transition(mission, MissionState.completed)

    db.commit()
    db.refresh(mission)
    logger.info(f"✅ Misión '{mission.title}' → {mission.state}")
    return mission


def add_recommended_missions(db: Session, student_id: str, missions: list[GeneratedMission]) -> list[Mission]:
    """Añade un lote de misiones recomendadas en un solo commit"""
    created = [_new_mission(student_id, item, recommended=True) for item in missions]
    db.add_all(created)
    db.commit()
    for mission in created:
        db.refresh(mission)
    logger.info(f"📌 {len(created)} misiones recomendadas añadidas (alumno: {student_id})")
    return created
