"""
=============================================================================
MAIN.PY — La API de Growth App
=============================================================================
Todos los endpoints de la API.

Secciones:
  1. AUTH      → Login, usuario actual
  2. PERFIL    → Nivel, XP, oro, radar de habilidades
  3. MISIONES  → Misiones diarias con IA, solicitudes de aprobación, liquidación
  4. DIARIO    → Diario de crecimiento, feedback con IA, respuestas del quiz
  5. RUTINAS   → Rutinas personalizadas y su cumplimiento diario
  6. PROFESOR  → Lista de alumnos, altas y bajas, análisis con IA, aprobación de misiones

Alumnos y profesores hacen login con nombre visible + código numérico y
luego envían el JWT recibido como "Authorization: Bearer <token>".
"""

import os
import logging
import traceback
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, HTTPException, status, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from database import get_db, init_db, SessionLocal
from models import Profile, profile_to_dict
from schemas import *
from auth import (
    LOGIN_ERROR, create_access_token, get_current_user, require_student,
    require_teacher, seed_accounts, verify_credentials,
)
from content import MISSIONS_ERROR
from genai_client import GenerativeClient, GenerationError
from profiles import ensure_profiles, get_public_profile
from progression import level_progress
import journal
import missions
import routines
import teacher

# ─────────────────────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("growth.api")

SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "1") == "1"

# ─────────────────────────────────────────────────────────────────────────────
# INICIALIZACIÓN TEMPRANA DE LA BASE DE DATOS
# ─────────────────────────────────────────────────────────────────────────────
# Tablas y cuentas de demo se crean también al importar, así la API
# funciona aunque se monte sin ejecutar el lifespan.

try:
    init_db()
    _db = SessionLocal()
    try:
        seed_accounts(_db)
    finally:
        _db.close()
    logger.info("✅ Base de datos inicializada (startup)")
except Exception as e:
    logger.error(f"❌ Error inicializando BD: {e}")


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Arranque:
      1. Crear las tablas si faltan
      2. Insertar las cuentas de demo
      3. Arrancar el scheduler de liquidación
    Apagado:
      - Detener el scheduler
    """
    logger.info("🚀 Arrancando Growth App...")

    init_db()
    db = SessionLocal()
    try:
        added = seed_accounts(db)
        if added:
            logger.info(f"✅ {added} cuentas de demo creadas")
    finally:
        db.close()

    if SCHEDULER_ENABLED:
        try:
            from scheduler import create_scheduler, start_scheduler
            create_scheduler()
            start_scheduler()
        except Exception as e:
            logger.error(f"❌ Error arrancando scheduler: {e}")

    yield

    logger.info("🛑 Apagando Growth App...")
    if SCHEDULER_ENABLED:
        from scheduler import stop_scheduler
        stop_scheduler()


# ─────────────────────────────────────────────────────────────────────────────
# APLICACIÓN FASTAPI
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Growth App API",
    description="Backend of the student growth dashboard: journals, missions, routines and teacher analysis",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────────────────────
# MANEJADORES DE ERRORES
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(missions.InvalidMissionTransition)
async def invalid_transition_handler(request: Request, exc: missions.InvalidMissionTransition):
    logger.warning(f"⚠️ {exc}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc), "current": exc.current, "target": exc.target}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Registra los errores no controlados y los devuelve como JSON"""
    error_msg = str(exc)
    logger.error(f"❌ Error no controlado en {request.url}: {error_msg}\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": error_msg,
            "type": type(exc).__name__,
            "path": str(request.url)
        }
    )


# ─────────────────────────────────────────────────────────────────────────────
# DEPENDENCIA DEL CLIENTE GENERATIVO
# ─────────────────────────────────────────────────────────────────────────────

_genai_client = None


def get_genai_client() -> GenerativeClient:
    global _genai_client
    if _genai_client is None:
        _genai_client = GenerativeClient()
    return _genai_client


# =============================================================================
# ===================== HEALTH CHECK ==========================================
# =============================================================================

@app.get("/", tags=["Health"])
def health_check():
    return {
        "status": "ok",
        "app": "Growth App",
        "version": "1.0.0",
        "timestamp": datetime.utcnow().isoformat()
    }


# =============================================================================
# ===================== SECCIÓN 1: AUTH =======================================
# =============================================================================

@app.post("/auth/login", response_model=TokenResponse, tags=["Auth"])
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """
    Login con nombre visible + código.

    El primer login crea el perfil privado; en los alumnos el espejo
    público se refresca en cada login.
    """
    account = verify_credentials(db, data.display_name, data.code)
    if account is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=LOGIN_ERROR)

    profile = ensure_profiles(db, account)
    logger.info(f"🔑 Login: {profile.display_name} ({profile.role})")

    return TokenResponse(
        access_token=create_access_token(profile.user_id, profile.role),
        user_id=profile.user_id,
        role=profile.role,
        display_name=profile.display_name,
    )


@app.get("/auth/me", response_model=ProfileResponse, tags=["Auth"])
def get_me(user: Profile = Depends(get_current_user)):
    return user


# =============================================================================
# ===================== SECCIÓN 2: PERFIL =====================================
# =============================================================================

@app.get("/profile", response_model=ProfileOverview, tags=["Profile"])
def get_profile_overview(user: Profile = Depends(get_current_user)):
    """Perfil privado más progreso de nivel y datos del gráfico radar"""
    snapshot = profile_to_dict(user)
    return ProfileOverview(
        profile=ProfileResponse.model_validate(user),
        level_info=LevelInfo(**level_progress(snapshot)),
        radar=[SkillPoint(skill=skill, value=value) for skill, value in snapshot["skills"].items()],
    )


# =============================================================================
# ===================== SECCIÓN 3: MISIONES ===================================
# =============================================================================

@app.get("/missions", response_model=list[MissionResponse], tags=["Missions"])
def list_my_missions(user: Profile = Depends(require_student), db: Session = Depends(get_db)):
    """Lista las misiones del alumno, pagando antes las ya aprobadas"""
    missions.settle_pending_rewards(db, user.user_id)
    return missions.list_missions(db, user.user_id)


@app.post("/missions/generate", response_model=list[MissionResponse], tags=["Missions"])
def generate_missions(
    user: Profile = Depends(require_student),
    db: Session = Depends(get_db),
    client: GenerativeClient = Depends(get_genai_client),
):
    """Sustituye las misiones abiertas por un nuevo lote generado con IA"""
    try:
        created = missions.generate_daily_missions(db, client, user.user_id, user.level)
    except GenerationError as e:
        logger.error(f"❌ Fallo generando misiones para {user.display_name}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=MISSIONS_ERROR)
    if not created:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=MISSIONS_ERROR)
    return missions.list_missions(db, user.user_id)


@app.post("/missions/settle", response_model=SettlementResponse, tags=["Missions"])
def settle_missions(user: Profile = Depends(require_student), db: Session = Depends(get_db)):
    return SettlementResponse(settled=missions.settle_pending_rewards(db, user.user_id))


@app.post("/missions/{mission_id}/request-completion", response_model=MissionResponse, tags=["Missions"])
def request_mission_completion(
    mission_id: str, user: Profile = Depends(require_student), db: Session = Depends(get_db)
):
    mission = missions.request_completion(db, mission_id, user.user_id)
    if mission is None:
        raise HTTPException(status_code=404, detail="Mission not found")
    return mission


# =============================================================================
# ===================== SECCIÓN 4: DIARIO =====================================
# =============================================================================

@app.post("/journal", response_model=JournalEntryResponse, tags=["Journal"])
def create_journal_entry(
    data: JournalCreate,
    user: Profile = Depends(require_student),
    db: Session = Depends(get_db),
    client: GenerativeClient = Depends(get_genai_client),
):
    """Guarda una entrada con feedback de IA, paga la recompensa de diario y añade un quiz"""
    try:
        return journal.submit_entry(db, client, user.user_id, data.content)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.get("/journal", response_model=list[JournalEntryResponse], tags=["Journal"])
def list_journal(user: Profile = Depends(require_student), db: Session = Depends(get_db)):
    return journal.list_entries(db, user.user_id)


@app.post("/journal/{entry_id}/answers", response_model=AnswerResult, tags=["Journal"])
def answer_question(
    entry_id: str, data: AnswerSubmit,
    user: Profile = Depends(require_student), db: Session = Depends(get_db)
):
    result = journal.grade_answer(db, user.user_id, entry_id, data.question_id, data.answer)
    if result is None:
        raise HTTPException(status_code=404, detail="Question not found")
    return result


# =============================================================================
# ===================== SECCIÓN 5: RUTINAS ====================================
# =============================================================================

@app.post("/routines", response_model=RoutineResponse, tags=["Routines"])
def create_routine(data: RoutineCreate, user: Profile = Depends(require_student), db: Session = Depends(get_db)):
    try:
        return routines.create_routine(db, user.user_id, data.title, data.days, data.time)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.get("/routines", response_model=list[RoutineResponse], tags=["Routines"])
def list_routines(
    today: bool = False,
    user: Profile = Depends(require_student),
    db: Session = Depends(get_db)
):
    """Todas las rutinas, o solo las de hoy con ?today=true"""
    on_date = routines.today() if today else None
    return routines.list_routines(db, user.user_id, on_date)


@app.post("/routines/{routine_id}/toggle", response_model=RoutineToggleResponse, tags=["Routines"])
def toggle_routine(
    routine_id: str, data: RoutineToggle,
    user: Profile = Depends(require_student), db: Session = Depends(get_db)
):
    routine, rewarded = routines.toggle_completion(db, user.user_id, routine_id, data.checked, data.on_date)
    if routine is None:
        raise HTTPException(status_code=404, detail="Routine not found")
    return RoutineToggleResponse(routine=RoutineResponse.model_validate(routine), rewarded=rewarded)


@app.delete("/routines/{routine_id}", tags=["Routines"])
def delete_routine(routine_id: str, user: Profile = Depends(require_student), db: Session = Depends(get_db)):
    if not routines.delete_routine(db, user.user_id, routine_id):
        raise HTTPException(status_code=404, detail="Routine not found")
    return {"message": "Routine deleted"}


# =============================================================================
# ===================== SECCIÓN 6: PROFESOR ===================================
# =============================================================================

@app.get("/teacher/students", response_model=list[StudentSummary], tags=["Teacher"])
def list_students(user: Profile = Depends(require_teacher), db: Session = Depends(get_db)):
    return teacher.list_students(db)


@app.post("/teacher/students", response_model=ProfileResponse, tags=["Teacher"])
def add_student(data: StudentCreate, user: Profile = Depends(require_teacher), db: Session = Depends(get_db)):
    try:
        return teacher.add_student(db, data.display_name, data.code)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@app.delete("/teacher/students/{student_id}", tags=["Teacher"])
def delete_student(student_id: str, user: Profile = Depends(require_teacher), db: Session = Depends(get_db)):
    if not teacher.delete_student(db, student_id):
        raise HTTPException(status_code=404, detail="Student not found")
    return {"message": "Student removed"}


@app.post("/teacher/students/{student_id}/analysis", response_model=AnalysisReport, tags=["Teacher"])
def analyse_student(
    student_id: str,
    data: AnalysisRequest,
    user: Profile = Depends(require_teacher),
    db: Session = Depends(get_db),
    client: GenerativeClient = Depends(get_genai_client),
):
    """Informe de progreso con IA; si el modelo falla solo lleva el resumen de respaldo"""
    mirror = get_public_profile(db, student_id)
    if mirror is None or mirror.is_deleted:
        raise HTTPException(status_code=404, detail="Student not found")
    student = profile_to_dict(mirror)
    return teacher.generate_analysis(client, student, missions.list_missions(db, student_id), data.period)


@app.post("/teacher/students/{student_id}/missions", response_model=list[MissionResponse], tags=["Teacher"])
def add_recommended_missions(
    student_id: str, data: RecommendedMissionsCreate,
    user: Profile = Depends(require_teacher), db: Session = Depends(get_db)
):
    if get_public_profile(db, student_id) is None:
        raise HTTPException(status_code=404, detail="Student not found")
    return missions.add_recommended_missions(db, student_id, data.missions)


@app.patch("/teacher/missions/{mission_id}/toggle", response_model=MissionResponse, tags=["Teacher"])
def toggle_mission(mission_id: str, user: Profile = Depends(require_teacher), db: Session = Depends(get_db)):
    """Aprueba (completa) una misión abierta, o reabre una aún no pagada"""
    mission = missions.toggle_completion(db, mission_id)
    if mission is None:
        raise HTTPException(status_code=404, detail="Mission not found")
    return mission
