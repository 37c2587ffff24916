"""
=============================================================================
GENAI_CLIENT.PY — Llamadas a la API del modelo de lenguaje
=============================================================================
Un POST por intento al endpoint generateContent, con reintentos y espera
exponencial:

  intento 1 ──falla──→ espera 1s ──→ intento 2 ──falla──→ espera 2s ──→ intento 3

Un intento falla cuando:
  - la propia petición falla (conexión, timeout)
  - el status no es 2xx
  - el cuerpo no es JSON, o no trae candidates[0].content.parts[0].text
  - (llamadas estructuradas) ese texto no es JSON válido

Si el tercer intento falla, su error llega a quien llama. Este módulo no
sabe nada de misiones ni diarios: cada llamador trae sus prompts y
esquemas (ver content.py).
"""

import json
import logging
import os
import time

import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger("growth.genai")

# ─────────────────────────────────────────────────────────────────────────────
# CONFIGURACIÓN
# ─────────────────────────────────────────────────────────────────────────────

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-preview-05-20")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")

MAX_ATTEMPTS = 3
INITIAL_DELAY_SECONDS = 1.0
# La espera se duplica tras cada intento fallido: 1s, 2s


class GenerationError(Exception):
    """Falló un intento (o, agotados los reintentos, la llamada entera)"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


def extract_text(body) -> str:
    """Devuelve candidates[0].content.parts[0].text o lanza GenerationError"""
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        text = None
    if not text:
        logger.error(f"Estructura de respuesta inválida: {str(body)[:500]}")
        raise GenerationError("Invalid generation response structure.")
    return text


def _error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Unknown error"
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"].get("message") or "Unknown error"
    return "Unknown error"


def _attempt(session, url: str, payload: dict, parse_json: bool, timeout: float):
    try:
        response = session.post(url, json=payload, timeout=timeout)
    except requests.RequestException as e:
        raise GenerationError(f"Request failed: {e}") from e

    if not response.ok:
        raise GenerationError(
            f"API call failed: {response.status_code} - {_error_message(response)}",
            status_code=response.status_code,
        )

    try:
        body = response.json()
    except ValueError as e:
        raise GenerationError("Response body is not JSON.") from e

    text = extract_text(body)
    if not parse_json:
        return text

    try:
        return json.loads(text)
    except ValueError as e:
        raise GenerationError(f"Structured response is not valid JSON: {text[:200]}") from e


def call_with_backoff(
    url: str,
    payload: dict,
    parse_json: bool = False,
    session=None,
    sleep=time.sleep,
    timeout: float = 60.0,
):
    """
    Envía `payload` a `url`, reintentando los intentos fallidos con espera exponencial.

    Devuelve el texto de la respuesta, o el objeto JSON ya parseado si
    parse_json=True. Si fallan todos, lanza el GenerationError del último.
    """
    session = session or requests.Session()
    retrying = Retrying(
        stop=stop_after_attempt(MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=INITIAL_DELAY_SECONDS, exp_base=2),
        retry=retry_if_exception_type(GenerationError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )
    return retrying(_attempt, session, url, payload, parse_json, timeout)


# =============================================================================
# ===================== CLIENTE ===============================================
# =============================================================================

class GenerativeClient:
    """Construye los payloads de generateContent y los envía con call_with_backoff()"""

    def __init__(
        self,
        api_key: str = None,
        model: str = None,
        base_url: str = None,
        session=None,
        sleep=time.sleep,
        timeout: float = 60.0,
    ):
        self.api_key = api_key if api_key is not None else GEMINI_API_KEY
        self.model = model or GEMINI_MODEL
        self.base_url = (base_url or GEMINI_BASE_URL).rstrip("/")
        self.session = session or requests.Session()
        self.sleep = sleep
        self.timeout = timeout

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent?key={self.api_key}"

    @staticmethod
    def build_payload(prompt: str, schema: dict = None) -> dict:
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if schema is not None:
            payload["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": schema,
            }
        return payload

    def _call(self, payload: dict, parse_json: bool):
        return call_with_backoff(
            self.url, payload,
            parse_json=parse_json,
            session=self.session,
            sleep=self.sleep,
            timeout=self.timeout,
        )

    def generate_text(self, prompt: str) -> str:
        return self._call(self.build_payload(prompt), parse_json=False)

    def generate_structured(self, prompt: str, schema: dict):
        """Pide una respuesta JSON que cumpla `schema` y la devuelve ya parseada"""
        return self._call(self.build_payload(prompt, schema), parse_json=True)
