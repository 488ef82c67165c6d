# group_billing/infrastructure/persistence/database.py
import logging
import os
from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv

load_dotenv()

POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))

_session_factory: Optional[sessionmaker] = None


def create_session_factory(database_url: str, **engine_options) -> sessionmaker:
    """Crea el engine y la fábrica de sesiones para una URL concreta."""
    engine_options.setdefault("pool_pre_ping", True)
    engine = create_engine(database_url, **engine_options)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_session_factory() -> sessionmaker:
    """
    Fábrica de sesiones de la base de datos de la clínica (PostgreSQL en
    producción). Se crea al primer uso, así importar el módulo no exige
    DATABASE_URL.
    """
    global _session_factory
    if _session_factory is None:
        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise ValueError("No se ha definido DATABASE_URL en el archivo .env")
        _session_factory = create_session_factory(database_url, pool_recycle=POOL_RECYCLE)
        logging.info("Conexión a la base de datos configurada.")
    return _session_factory


def get_db():
    """Dependencia de FastAPI: una sesión por petición."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
