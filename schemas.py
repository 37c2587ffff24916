"""
=============================================================================
SCHEMAS.PY — Esquemas de validación (Pydantic)
=============================================================================
Los modelos (SQLAlchemy) definen las TABLAS; los schemas definen qué acepta
y qué devuelve la API. También validan lo que devuelve el modelo de
lenguaje, así una misión mal formada nunca llega a la base de datos.

Nombres:
  XxxCreate → cuerpo de un POST
  XxxResponse → lo que devuelve la API
  GeneratedXxx → un elemento producido por el modelo (acepta claves camelCase)
"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from models import MissionCategory

Weekday = Literal["월", "화", "수", "목", "금", "토", "일"]


# =============================================================================
# ===================== AUTH ==================================================
# =============================================================================

class LoginRequest(BaseModel):
    """Nombre visible + código numérico"""
    display_name: str = Field(min_length=1, max_length=100)
    code: str = Field(pattern=r"^\d+$", max_length=20)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: str
    display_name: str


# =============================================================================
# ===================== PERFIL ================================================
# =============================================================================

class ProfileResponse(BaseModel):
    user_id: str
    role: str
    display_name: str
    xp: int
    gold: int
    level: int
    skills: dict[str, int]
    is_deleted: bool = False
    last_update: Optional[datetime] = None
    model_config = {"from_attributes": True}


class LevelInfo(BaseModel):
    level: int
    xp: int
    xp_next_level: int
    xp_to_next_level: int
    xp_progress: float


class SkillPoint(BaseModel):
    """Un eje del gráfico radar de habilidades"""
    skill: str
    value: int
    full_mark: int = 100


class ProfileOverview(BaseModel):
    profile: ProfileResponse
    level_info: LevelInfo
    radar: list[SkillPoint]


# =============================================================================
# ===================== MISIONES ==============================================
# =============================================================================

class GeneratedMission(BaseModel):
    """Una misión tal como la propone el modelo (o un profesor)"""
    title: str = Field(min_length=1, max_length=200)
    category: MissionCategory = Field(validation_alias=AliasChoices("category", "type"))
    description: str = ""
    reward_xp: int = Field(default=0, ge=0, validation_alias=AliasChoices("reward_xp", "rewardXp"))
    reward_gold: int = Field(default=0, ge=0, validation_alias=AliasChoices("reward_gold", "rewardGold"))

    @field_validator("reward_xp", "reward_gold", mode="before")
    @classmethod
    def _round_number(cls, value):
        # El esquema declara NUMBER, así que puede llegar 10.0 (o 12.5)
        if isinstance(value, float):
            return int(round(value))
        return value


class MissionResponse(BaseModel):
    id: str
    student_id: str
    title: str
    category: str
    description: Optional[str]
    reward_xp: int
    reward_gold: int
    state: str
    is_completed: bool
    is_pending_approval: bool
    is_student_rewarded: bool
    is_recommended: bool
    generated_at: datetime
    requested_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    model_config = {"from_attributes": True}


class SettlementResponse(BaseModel):
    settled: int


class RecommendedMissionsCreate(BaseModel):
    missions: list[GeneratedMission] = Field(min_length=1)


# =============================================================================
# ===================== DIARIO ================================================
# =============================================================================

class JournalCreate(BaseModel):
    content: str = Field(min_length=1)


class Question(BaseModel):
    id: str
    question_text: str
    type: str
    options: Optional[list[str]] = None
    correct_answer: str
    explanation: str = ""


class GeneratedQuestion(BaseModel):
    question_text: str = Field(validation_alias=AliasChoices("question_text", "questionText"))
    type: Literal["객관식", "단답형"]
    options: Optional[list[str]] = None
    correct_answer: str = Field(validation_alias=AliasChoices("correct_answer", "correctAnswer"))
    explanation: str = ""


class JournalEntryResponse(BaseModel):
    id: str
    content: str
    ai_feedback: Optional[str]
    questions: list[Question]
    created_at: datetime
    model_config = {"from_attributes": True}


class AnswerSubmit(BaseModel):
    question_id: str
    answer: str


class AnswerResult(BaseModel):
    question_id: str
    is_correct: bool
    feedback: str
    explanation: str


# =============================================================================
# ===================== RUTINAS ===============================================
# =============================================================================

class RoutineCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    days: list[Weekday] = Field(min_length=1)
    time: str = Field(min_length=1, max_length=50)

    @field_validator("title", "time")
    @classmethod
    def _not_blank(cls, value: str):
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class RoutineToggle(BaseModel):
    checked: bool
    on_date: Optional[date] = None
    # on_date → por defecto hoy (APP_TIMEZONE)


class RoutineResponse(BaseModel):
    id: str
    title: str
    days: list[str]
    time: str
    completed_days: dict[str, bool]
    created_at: datetime
    model_config = {"from_attributes": True}


class RoutineToggleResponse(BaseModel):
    routine: RoutineResponse
    rewarded: bool


# =============================================================================
# ===================== PROFESOR ==============================================
# =============================================================================

class StudentCreate(BaseModel):
    display_name: str = Field(min_length=1, max_length=100)
    code: str = Field(pattern=r"^\d+$", max_length=20)


class StudentSummary(BaseModel):
    id: str
    display_name: str
    level: int
    xp: int
    gold: int
    skills: dict[str, int]
    from_store: bool
    # from_store=False → la cuenta existe pero el alumno nunca hizo login
    completed_missions: int
    missions: list[MissionResponse]


class AnalysisRequest(BaseModel):
    period: Literal["weekly", "monthly"] = "weekly"


class AnalysisReport(BaseModel):
    summary: str
    strength: Optional[str] = None
    weakness: Optional[str] = None
    alert: Optional[str] = None
    recommended_missions: Optional[list[GeneratedMission]] = Field(
        default=None,
        validation_alias=AliasChoices("recommended_missions", "recommendedMissions"),
    )
