"""
=============================================================================
JOURNAL.PY — Diario de crecimiento y su quiz
=============================================================================
Al enviar una entrada:
  1. Se pide al modelo un feedback breve y motivador (texto de respaldo si falla)
  2. Se guarda la entrada
  3. Se paga la recompensa de diario (XP, oro, lectoescritura, creatividad)
  4. Se piden al modelo 3 preguntas de quiz y se añaden a la entrada

Responder bien una pregunta paga la recompensa de resolución de problemas.
"""

import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from database import scoped
from models import JournalEntry
from progression import REWARDS, update_student_profile
from genai_client import GenerationError
from content import (
    QUESTION_SCHEMA, FEEDBACK_ERROR, FEEDBACK_EMPTY,
    journal_feedback_prompt, journal_questions_prompt,
)
from schemas import GeneratedQuestion

logger = logging.getLogger("growth.journal")


def _feedback(client, content: str) -> str:
    try:
        return client.generate_text(journal_feedback_prompt(content)) or FEEDBACK_EMPTY
    except GenerationError as e:
        logger.error(f"❌ Fallo generando el feedback del diario: {e}")
        return FEEDBACK_ERROR


def generate_questions(db: Session, client, entry: JournalEntry) -> list[dict]:
    """Genera las preguntas de quiz de `entry` y las guarda en ella"""
    try:
        raw = client.generate_structured(journal_questions_prompt(entry.content), QUESTION_SCHEMA)
    except GenerationError as e:
        logger.error(f"❌ Fallo generando preguntas para la entrada {entry.id}: {e}")
        return []

    questions = []
    for item in raw if isinstance(raw, list) else []:
        try:
            parsed = GeneratedQuestion.model_validate(item)
        except ValidationError:
            logger.warning(f"⚠️ Pregunta mal formada descartada (entrada {entry.id})")
            continue
        questions.append({"id": f"q-{entry.id}-{len(questions)}", **parsed.model_dump()})

    if questions:
        entry.questions = questions
        db.commit()
        db.refresh(entry)
    return questions


def submit_entry(db: Session, client, user_id: str, content: str) -> JournalEntry:
    content = (content or "").strip()
    if not content:
        raise ValueError("Journal entry must not be empty")

    entry = JournalEntry(
        user_id=user_id,
        content=content,
        ai_feedback=_feedback(client, content),
        questions=[],
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info(f"📝 Entrada de diario guardada (usuario: {user_id})")

    update_student_profile(db, user_id, REWARDS["journal_entry"], user_id)
    generate_questions(db, client, entry)
    return entry


def list_entries(db: Session, user_id: str) -> list[JournalEntry]:
    """Entradas de un usuario, las más recientes primero"""
    return scoped(db, JournalEntry).filter(
        JournalEntry.user_id == user_id
    ).order_by(JournalEntry.created_at.desc(), JournalEntry.id).all()


def get_entry(db: Session, user_id: str, entry_id: str):
    return scoped(db, JournalEntry).filter(
        JournalEntry.id == entry_id, JournalEntry.user_id == user_id
    ).first()


def answers_match(answer: str, correct: str) -> bool:
    return (answer or "").strip().lower() == (correct or "").strip().lower()


def grade_answer(db: Session, user_id: str, entry_id: str, question_id: str, answer: str):
    """
    Compara una respuesta con la pregunta guardada.

    Devuelve None si la entrada o la pregunta no existen.
    """
    entry = get_entry(db, user_id, entry_id)
    if entry is None:
        return None

    question = next((q for q in entry.questions or [] if q.get("id") == question_id), None)
    if question is None:
        return None

    is_correct = answers_match(answer, question.get("correct_answer"))
    if is_correct:
        update_student_profile(db, user_id, REWARDS["quiz_correct"], user_id)

    return {
        "question_id": question_id,
        "is_correct": is_correct,
        "feedback": "정답!" if is_correct else "오답.",
        "explanation": question.get("explanation") or "",
    }
