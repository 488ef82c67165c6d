# config.py
import os
from dotenv import load_dotenv

load_dotenv()

# --- CONFIGURACIÓN DE GOOGLE ---
# ID de la carpeta de Google Drive donde se guardan los PDFs y los ZIP de facturas
DRIVE_PARENT_FOLDER_ID = os.getenv("DRIVE_PARENT_FOLDER_ID", "")

# Alcances requeridos por la API de Drive
SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
]

TOKEN_FILE = os.getenv("GOOGLE_TOKEN_FILE", "token.json")

# --- CONFIGURACIÓN DE FACTURACIÓN ---
# Intentos máximos para encontrar un número libre si ya existe en la base de datos
MAX_NUMBER_ATTEMPTS = int(os.getenv("MAX_NUMBER_ATTEMPTS", "1000"))

# --- CONFIGURACIÓN DEL ZIP ---
ARCHIVE_CLIENT_NAME_LENGTH = 30
ARCHIVE_COMPRESSION_LEVEL = int(os.getenv("ARCHIVE_COMPRESSION_LEVEL", "6"))

# --- CONFIGURACIÓN DE CELERY ---
CELERY_PUBSUB_TOPIC = os.getenv("CELERY_PUBSUB_TOPIC", "group-billing-runs")
