import logging
import os
from typing import Callable

from google.auth import default as google_auth_default
from google.cloud import secretmanager, storage
from google.oauth2 import service_account
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from museum.config import Settings

logger = logging.getLogger("museum_backend")


class GCConnection:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.PROJECT_ID = settings.project_id
        self.BUCKET_NAME = settings.gcs_bucket_name
        self.DB_HOST = settings.db_host
        self.DB_PORT = settings.db_port
        self.DB_NAME = settings.db_name
        self.DB_USER = settings.db_user
        self.DB_PASSWORD = settings.db_password
        self.DB_SECRET_ID = settings.db_secret_id

        # GCP clients are built on first use so sqlite/mock setups need no credentials
        self._creds = None
        self._storage_client = None
        self._secret_client = None
        self._engine = None
        self._sessionmaker = None

        # !###############################################
        # !   EITHER A DATABASE_URL IN THE .ENV FILE OR
        # !   DIRECT CLOUD SQL SETTINGS (pg8000)
        # !###############################################
        self.DATABASE_URL = settings.database_url
        self.IS_LOCAL = True
        if not self.DATABASE_URL:
            self.IS_LOCAL = False
            self.DATABASE_URL = (
                f"postgresql+pg8000://{self.DB_USER}:{self._get_db_password_lazy()}"
                f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            )

    # -------- GCP auth / creds --------
    def _build_creds(self):
        key_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        scopes = ["https://www.googleapis.com/auth/cloud-platform"]
        if key_path and os.path.exists(key_path):
            return service_account.Credentials.from_service_account_file(key_path, scopes=scopes)
        creds, _ = google_auth_default(scopes=scopes)
        return creds

    @property
    def creds(self):
        if self._creds is None:
            self._creds = self._build_creds()
        return self._creds

    @property
    def storage_client(self) -> storage.Client:
        if self._storage_client is None:
            self._storage_client = storage.Client(project=self.PROJECT_ID or None, credentials=self.creds)
        return self._storage_client

    # -------- DB password (Secret Manager) --------
    def _get_db_password_lazy(self) -> str:
        if self.DB_PASSWORD:
            return self.DB_PASSWORD
        if self.DB_SECRET_ID:
            if self._secret_client is None:
                self._secret_client = secretmanager.SecretManagerServiceClient(credentials=self.creds)
            name = self._secret_client.secret_version_path(self.PROJECT_ID, self.DB_SECRET_ID, "latest")
            resp = self._secret_client.access_secret_version(request={"name": name})
            self.DB_PASSWORD = resp.payload.data.decode("utf-8")
            return self.DB_PASSWORD
        raise RuntimeError("No DB_PASSWORD and no Secret Manager configured")

    # -------- SQLAlchemy engine / Session factory --------
    def build_engine(self) -> Engine:
        if self._engine is None:
            if self.DATABASE_URL.startswith("sqlite"):
                kwargs = {"connect_args": {"check_same_thread": False}}
                if ":memory:" in self.DATABASE_URL or self.DATABASE_URL in ("sqlite://", "sqlite:///"):
                    kwargs["poolclass"] = StaticPool
                self._engine = create_engine(self.DATABASE_URL, future=True, **kwargs)
            else:
                # pg8000 supports 'timeout' in seconds
                self._engine = create_engine(
                    self.DATABASE_URL,
                    future=True,
                    pool_pre_ping=True,
                    connect_args={"timeout": 10} if "pg8000" in self.DATABASE_URL else {},
                )
            logger.info(f"[DB] Engine ready ({'local url' if self.IS_LOCAL else self.DB_HOST})")
        return self._engine

    def build_db_session_factory(self) -> Callable[[], Session]:
        if not self._sessionmaker:
            self._sessionmaker = sessionmaker(
                bind=self.build_engine(),
                autoflush=False,
                autocommit=False,
                future=True,
                expire_on_commit=False,
            )

        def _factory() -> Session:
            return self._sessionmaker()

        return _factory

    # -------- Storage helpers --------
    def upload_to_gcs(self, bucket_name: str, blob_path: str, data: bytes,
                      content_type: str = "image/png"):
        bucket = self.storage_client.bucket(bucket_name)
        blob = bucket.blob(blob_path)
        blob.upload_from_string(data, content_type=content_type)
        return f"gs://{bucket_name}/{blob_path}", f"https://storage.googleapis.com/{bucket_name}/{blob_path}"
