"""
=============================================================================
DATABASE.PY — Configuración de la base de datos
=============================================================================
Conexión a la base de datos donde viven todos los perfiles, misiones,
entradas del diario y rutinas.

En DESARROLLO: SQLite (un archivo .db local)
En PRODUCCIÓN: PostgreSQL

¿Cómo decide cuál usar?
→ Si existe la variable de entorno DATABASE_URL, se usa tal cual.
→ Si no, se crea un archivo SQLite local.

Cada fila lleva además un APP_ID (el identificador del despliegue), así
varios despliegues pueden compartir una base de datos sin verse entre sí.
Las consultas pasan por scoped() para no olvidar nunca ese filtro.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

# ─────────────────────────────────────────────────────────────────────────────
# CONEXIÓN
# ─────────────────────────────────────────────────────────────────────────────

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./growth.db")

# Los Postgres alojados dan URLs "postgres://"; SQLAlchemy + psycopg (v3)
# necesita "postgresql+psycopg://"
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+psycopg://", 1)
elif DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+psycopg://", 1)

APP_ID = os.getenv("APP_ID", "growth-app-default")
# APP_ID → espacio de nombres del despliegue, escrito en cada fila

# ─────────────────────────────────────────────────────────────────────────────
# MOTOR
# ─────────────────────────────────────────────────────────────────────────────
# check_same_thread=False → solo para SQLite, que por defecto rechaza
# conexiones compartidas entre hilos (FastAPI ejecuta endpoints sync en un pool).

engine_args = {}
if DATABASE_URL.startswith("sqlite"):
    engine_args["connect_args"] = {"check_same_thread": False}

engine = create_engine(DATABASE_URL, echo=False, **engine_args)

# ─────────────────────────────────────────────────────────────────────────────
# SESIÓN
# ─────────────────────────────────────────────────────────────────────────────

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ─────────────────────────────────────────────────────────────────────────────
# BASE
# ─────────────────────────────────────────────────────────────────────────────

Base = declarative_base()


def get_db():
    """
    Entrega una sesión y la cierra cuando termina la petición.

    Se usa como dependencia de FastAPI:
      @app.get("/something")
      def endpoint(db: Session = Depends(get_db)):
          ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def scoped(db, model):
    """Consulta sobre `model` limitada al despliegue actual (APP_ID)."""
    return db.query(model).filter(model.app_id == APP_ID)


def init_db():
    """
    Crea todas las tablas que aún no existen.
    Se llama una vez al arrancar la aplicación.
    """
    import models  # noqa: F401  (registra las tablas en Base.metadata)
    Base.metadata.create_all(bind=engine)
