# group_billing/infrastructure/external/google_drive_adapter.py
import io
import logging
import os
import posixpath
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from group_billing.domain.errors import StorageError
from group_billing.domain.ports.file_storage import FileStorage
import config


class GoogleDriveFileStorage(FileStorage):
    """
    Sube PDFs y ZIP de facturas a la carpeta configurada de Google Drive.
    La ruta lógica (`facturas/{org}/factura-X.pdf`) se guarda en la
    descripción del archivo; en Drive solo se usa el nombre final.

    El cliente de Drive se crea en la primera subida: sin token válido la
    facturación sigue adelante y cada subida falla con StorageError.
    """
    def __init__(self, service=None, parent_folder_id: str = None, token_file: str = None):
        self.service = service
        self.parent_folder_id = parent_folder_id or config.DRIVE_PARENT_FOLDER_ID
        self.token_file = token_file or config.TOKEN_FILE

    def _load_credentials(self) -> Credentials:
        if not os.path.exists(self.token_file):
            raise StorageError(f"No existe el token de Google '{self.token_file}'.")
        creds = Credentials.from_authorized_user_file(self.token_file, config.SCOPES)
        if creds.expired and creds.refresh_token:
            creds.refresh(Request())
        return creds

    def _get_service(self):
        if self.service is None:
            try:
                creds = self._load_credentials()
                self.service = build('drive', 'v3', credentials=creds, cache_discovery=False)
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"No se pudo conectar con Google Drive: {e}") from e
        return self.service

    def upload(self, content: bytes, path: str, mime_type: str = "application/pdf") -> str:
        filename = posixpath.basename(path)
        file_metadata = {'name': filename, 'description': path}
        if self.parent_folder_id:
            file_metadata['parents'] = [self.parent_folder_id]
        media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=False)

        service = self._get_service()
        try:
            created = service.files().create(
                body=file_metadata,
                media_body=media,
                fields='id, webViewLink'
            ).execute()
        except (HttpError, OSError) as e:
            raise StorageError(f"Falló la subida de {filename} a Google Drive: {e}") from e

        logging.info(f"Archivo {filename} subido a Google Drive (ID: {created.get('id')}).")
        return created.get('webViewLink')
