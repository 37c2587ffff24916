"""
=============================================================================
MODELS.PY — Todas las tablas de la base de datos
=============================================================================
Cada clase aquí = una tabla. Cada atributo = una columna.

De cada perfil de alumno existen dos copias:
  PROFILE (privada, la lee el propio alumno)
  PUBLIC_STUDENT_PROFILE (espejo, la leen los profesores)

Estructura:
  ACCOUNT ──→ credencial de un PROFILE (mismo user_id)
  PROFILE / PUBLIC_STUDENT_PROFILE
  ├── missions[]          (colección compartida, filtrada por student_id)
  ├── journal_entries[]   (questions[] embebidas como JSON)
  └── custom_routines[]   (completed_days{} embebido como JSON)

Todas las tablas llevan app_id (ver database.scoped).
"""

import enum
import uuid
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, Text, DateTime, JSON, UniqueConstraint
)
from database import Base, APP_ID


def new_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# ===================== ENUMS ================================================
# =============================================================================

class Role(str, enum.Enum):
    student = "student"
    teacher = "teacher"


class MissionCategory(str, enum.Enum):
    """Categorías de misión; los valores son las etiquetas que se piden al modelo"""
    reading = "읽기"
    writing = "쓰기"
    math = "수리"
    problem_solving = "문제풀이"
    creative = "창작"
    inquiry = "탐구"


class MissionState(str, enum.Enum):
    """
    Ciclo de vida de una misión:
      created → (pending_approval) → completed → rewarded
    rewarded es final. Ver missions.TRANSITIONS.
    """
    created = "created"
    pending_approval = "pending_approval"
    completed = "completed"
    rewarded = "rewarded"


# ── Habilidades (las etiquetas coreanas son las claves de profile.skills) ──
SKILL_LITERACY = "문해력"
SKILL_NUMERACY = "수리력"
SKILL_CREATIVITY = "창의력"
SKILL_RESPONSIBILITY = "책임감"
SKILL_PROBLEM_SOLVING = "문제 해결 능력"
SKILL_SELF_DIRECTED = "자기 주도 학습 능력"

ALL_SKILLS = [
    SKILL_LITERACY, SKILL_NUMERACY, SKILL_CREATIVITY,
    SKILL_RESPONSIBILITY, SKILL_PROBLEM_SOLVING, SKILL_SELF_DIRECTED,
]


def initial_skills() -> dict:
    return {skill: 0 for skill in ALL_SKILLS}


# =============================================================================
# ===================== TABLA 1: CUENTAS ======================================
# =============================================================================
# Almacén de credenciales. El secreto (código numérico de login) solo se
# guarda como hash bcrypt.

class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    app_id = Column(String(100), nullable=False, default=APP_ID, index=True)

    display_name = Column(String(100), nullable=False)
    secret_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=Role.student.value)
    user_id = Column(String(64), nullable=False, default=new_id)
    # user_id → identificador de los perfiles de esta cuenta

    active = Column(Boolean, default=True)
    # active=False → el profesor dio de baja al alumno; sin login ni tokens

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("app_id", "display_name", name="uq_account_name"),
        UniqueConstraint("app_id", "user_id", name="uq_account_user"),
    )


# =============================================================================
# ===================== TABLAS 2-3: PERFILES ==================================
# =============================================================================

class ProfileColumns:
    """Columnas comunes al perfil privado y a su espejo público"""

    app_id = Column(String(100), primary_key=True, default=APP_ID)
    user_id = Column(String(64), primary_key=True)

    role = Column(String(20), nullable=False, default=Role.student.value)
    display_name = Column(String(100), nullable=False)

    # ── Progresión ──
    xp = Column(Integer, default=0, nullable=False)
    gold = Column(Integer, default=0, nullable=False)
    level = Column(Integer, default=1, nullable=False)
    skills = Column(JSON, default=initial_skills)
    # skills → {"문해력": 15, "책임감": 5, ...}

    is_deleted = Column(Boolean, default=False)
    # is_deleted → oculto en la lista del profesor (soft delete)

    created_at = Column(DateTime, default=datetime.utcnow)
    last_update = Column(DateTime, default=datetime.utcnow)


# Campos de un snapshot de perfil
PROFILE_FIELDS = [
    "user_id", "role", "display_name", "xp", "gold", "level", "skills",
    "is_deleted", "created_at", "last_update",
]

# Los únicos que cambia una recompensa
PROGRESS_FIELDS = ["xp", "gold", "level", "skills", "last_update"]


class Profile(ProfileColumns, Base):
    """Copia privada; solo se escribe cuando el dueño actualiza su propio perfil"""
    __tablename__ = "profiles"


class PublicStudentProfile(ProfileColumns, Base):
    """Espejo visible para los profesores; se escribe en cada actualización"""
    __tablename__ = "public_student_profiles"


def profile_to_dict(row) -> dict:
    """Snapshot de una fila de perfil, la forma con la que trabaja progression.apply_reward"""
    data = {field: getattr(row, field) for field in PROFILE_FIELDS}
    data["skills"] = dict(row.skills or {})
    return data


# =============================================================================
# ===================== TABLA 4: MISIONES =====================================
# =============================================================================

class Mission(Base):
    __tablename__ = "missions"

    id = Column(String(64), primary_key=True, default=new_id)
    app_id = Column(String(100), nullable=False, default=APP_ID, index=True)
    student_id = Column(String(64), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    category = Column(String(20), nullable=False)
    # category → uno de los valores de MissionCategory ("읽기", "수리", ...)
    description = Column(Text, nullable=True)
    reward_xp = Column(Integer, default=0)
    reward_gold = Column(Integer, default=0)

    state = Column(String(20), nullable=False, default=MissionState.created.value)
    is_recommended = Column(Boolean, default=False)
    # is_recommended → añadida por un profesor desde un informe de análisis

    # ── Fechas ──
    generated_at = Column(DateTime, default=datetime.utcnow)
    requested_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    rewarded_at = Column(DateTime, nullable=True)

    # ── Flags derivados del estado ──
    @property
    def is_completed(self) -> bool:
        return self.state in (MissionState.completed.value, MissionState.rewarded.value)

    @property
    def is_pending_approval(self) -> bool:
        return self.state == MissionState.pending_approval.value

    @property
    def is_student_rewarded(self) -> bool:
        return self.state == MissionState.rewarded.value


# =============================================================================
# ===================== TABLA 5: ENTRADAS DEL DIARIO ==========================
# =============================================================================

class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id = Column(String(64), primary_key=True, default=new_id)
    app_id = Column(String(100), nullable=False, default=APP_ID, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    content = Column(Text, nullable=False)
    ai_feedback = Column(Text, nullable=True)
    questions = Column(JSON, default=list)
    # questions → [{"id": "q-<entry>-0", "question_text": ..., "type": "객관식",
    #               "options": [...], "correct_answer": ..., "explanation": ...}]

    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# ===================== TABLA 6: RUTINAS PERSONALIZADAS =======================
# =============================================================================

class CustomRoutine(Base):
    __tablename__ = "custom_routines"

    id = Column(String(64), primary_key=True, default=new_id)
    app_id = Column(String(100), nullable=False, default=APP_ID, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    title = Column(String(100), nullable=False)
    days = Column(JSON, nullable=False, default=list)
    # days → ["월", "수", "금"]
    time = Column(String(50), nullable=False)
    # time → texto libre ("07:30", "저녁 먹고")
    completed_days = Column(JSON, default=dict)
    # completed_days → {"2026-10-19": true, "2026-10-20": false}

    created_at = Column(DateTime, default=datetime.utcnow)
