"""
=============================================================================
CONTENT.PY — Prompts y esquemas de respuesta para el modelo de lenguaje
=============================================================================
Todo lo que la app le pide al modelo vive aquí, junto al esquema JSON que
debe seguir la respuesta. Los gestores (missions, journal, teacher) solo
llaman a estos constructores y pasan el resultado a GenerativeClient.

Los alumnos son de 3º de primaria en Corea, así que los prompts van en coreano.
"""

from models import MissionCategory

CATEGORY_VALUES = [c.value for c in MissionCategory]

# =============================================================================
# ===================== ESQUEMAS ==============================================
# =============================================================================

MISSION_ITEM_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "type": {"type": "STRING", "enum": CATEGORY_VALUES},
        "description": {"type": "STRING"},
        "rewardXp": {"type": "NUMBER"},
        "rewardGold": {"type": "NUMBER"},
    },
    "required": ["title", "type", "description", "rewardXp", "rewardGold"],
}

MISSION_SCHEMA = {"type": "ARRAY", "items": MISSION_ITEM_SCHEMA}

QUESTION_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "questionText": {"type": "STRING"},
            "type": {"type": "STRING", "enum": ["객관식", "단답형"]},
            "options": {"type": "ARRAY", "items": {"type": "STRING"}, "nullable": True},
            "correctAnswer": {"type": "STRING"},
            "explanation": {"type": "STRING"},
        },
        "required": ["questionText", "type", "correctAnswer", "explanation"],
    },
}

ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "summary": {"type": "STRING", "description": "기간 동안의 학습 현황 요약 (2-3문장)"},
        "strength": {"type": "STRING", "description": "가장 두드러진 역량 또는 활동"},
        "weakness": {"type": "STRING", "description": "보완이 필요한 역량 또는 활동"},
        "alert": {"type": "STRING", "nullable": True, "description": "학습 부진이 보이면 경고 메시지"},
        "recommendedMissions": {
            "type": "ARRAY",
            "nullable": True,
            "description": "부진 영역을 보완할 추천 미션 2개",
            "items": MISSION_ITEM_SCHEMA,
        },
    },
    "required": ["summary", "strength", "weakness"],
}

# ── Textos de respaldo que ven los usuarios cuando el modelo no responde ──
FEEDBACK_ERROR = "AI 피드백 생성 중 오류가 발생했습니다."
FEEDBACK_EMPTY = "피드백 생성에 실패했습니다."
ANALYSIS_ERROR = "리포트 생성 중 오류가 발생했습니다. 다시 시도해주세요."
MISSIONS_ERROR = "미션 생성에 실패했습니다. 잠시 후 다시 시도해주세요."

PERIOD_LABELS = {"weekly": "주간", "monthly": "월간"}


# =============================================================================
# ===================== PROMPTS ===============================================
# =============================================================================

def journal_feedback_prompt(content: str) -> str:
    return (
        f'학생이 쓴 학습 일지: "{content}". '
        "이 학생을 칭찬하고 격려하면서, 다음에 해 볼 수 있는 구체적인 조언을 "
        "2-3문장으로 알려 주세요."
    )


def journal_questions_prompt(content: str) -> str:
    return (
        f'학생이 쓴 학습 일지: "{content}". '
        "일지 내용과 관련된 초등학교 3학년 수준의 국어 또는 수학 문제 3개를 만들어 주세요. "
        "정답이 하나로 분명한 문제만 내고, 형식은 객관식 또는 단답형으로 합니다. "
        "문제마다 정답과 이해하기 쉬운 해설을 붙여 주세요."
    )


def daily_missions_prompt(level: int) -> str:
    return (
        "당신은 초등학교 3학년 담임 교사입니다. 2022 개정 교육과정에 맞춰 "
        f"레벨 {level} 학생이 오늘 해 볼 미션 4개를 만들어 주세요. "
        "국어(어휘, 문장 만들기), 수학(세 자리 수 덧셈, 곱셈구구), "
        "통합교과(동네 관찰) 등 여러 과목을 섞고, 학생이 바로 실천할 수 있도록 "
        "구체적으로 적어 주세요. 각 미션에는 title, type, description, "
        "rewardXp, rewardGold가 있어야 합니다."
    )


def analysis_prompt(student: dict, completed_missions: int, period: str) -> str:
    period_text = PERIOD_LABELS.get(period, PERIOD_LABELS["weekly"])
    skills = ", ".join(
        f"{skill}: {score}점" for skill, score in (student.get("skills") or {}).items()
    ) or "기록 없음"
    name = student.get("display_name", "")
    return f"""
당신은 초등학교 3학년 학생의 {period_text} 학습 데이터를 분석해 교사용 리포트를
쓰는 교육 전문가입니다. 2022 개정 교육과정의 성취 기준을 근거로 분석해 주세요.

학생 정보:
- 이름: {name}
- 레벨: {student.get("level", 1)}
- 완료한 미션 수: {completed_missions}개
- 역량 점수: {skills}

작성할 항목:
1. summary: 이번 {period_text} 학습 활동 요약 (2-3문장)
2. strength: 점수가 높거나 활동이 많았던 역량과 그 의미
3. weakness: 점수가 낮거나 활동이 적었던 역량과 보완할 점
4. alert: 어떤 역량이 10점 미만이면 "학습 부진 경고" 메시지, 아니면 비워 둘 것
5. recommendedMissions: alert가 있을 때만, 그 역량을 보완할 3학년 수준의 미션 2개
   (title, type, description, rewardXp, rewardGold)
""".strip()
