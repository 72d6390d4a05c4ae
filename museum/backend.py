# museum/backend.py
import logging
from typing import Callable, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from museum.auth import TokenIssuer
from museum.capture_service import CaptureService
from museum.config import Settings
from museum.entities import Base
from museum.GCConnection_hlpr import GCConnection
from museum.image_client import ImageGenerator, build_image_generator
from museum.image_converter import ImageConverter
from museum.llm_client import TextGenerator, build_text_generator
from museum.modified_service import ModifiedService
from museum.object_service import ObjectService
from museum.provisioning import ThemeProvisioner
from museum.storage import ObjectStorage, build_storage
from museum.theme_analysis import ThemeAnalysisService
from museum.theme_catalog import ThemeCatalog, load_theme_catalog
from museum.user_service import UserService
from museum.utils import Utils

logger = logging.getLogger("museum_backend")


class Backend(Utils):
    """
    Builds every collaborator once from validated settings and wires the services.
    Anything passed in explicitly (tests, scripts) replaces the configured default.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        session_factory: Optional[Callable[[], Session]] = None,
        text_generator: Optional[TextGenerator] = None,
        image_generator: Optional[ImageGenerator] = None,
        storage: Optional[ObjectStorage] = None,
        theme_catalog: Optional[ThemeCatalog] = None,
        image_converter: Optional[ImageConverter] = None,
        create_tables: bool = True,
    ):
        self.settings = settings
        self.connection: Optional[GCConnection] = None

        if session_factory is None:
            self.connection = GCConnection(settings)
            session_factory = self.connection.build_db_session_factory()
            if create_tables:
                Base.metadata.create_all(bind=self.connection.build_engine())
        self.SessionFactory = session_factory

        self.catalog = theme_catalog or load_theme_catalog(settings.theme_templates_path)
        self.text_generator = text_generator or build_text_generator(settings)
        self.image_generator = image_generator or build_image_generator(settings)
        self.storage = storage or build_storage(settings, self.connection)
        self.image_converter = image_converter or ImageConverter(timeout=settings.llm_timeout or 30.0)
        self.tokens = TokenIssuer(settings.jwt_secret, settings.jwt_expires_hours)

        self.provisioner = ThemeProvisioner(self.SessionFactory, self.catalog)
        self.users = UserService(
            self.SessionFactory,
            self.catalog,
            self.provisioner,
            self.tokens,
            admin_emails=settings.admin_emails,
        )
        self.modified = ModifiedService(self.SessionFactory)
        self.objects = ObjectService(
            self.SessionFactory,
            self.text_generator,
            self.image_generator,
            self.storage,
            image_converter=self.image_converter,
        )
        self.analysis = ThemeAnalysisService(self.text_generator, self.catalog)
        self.captures = CaptureService(self.SessionFactory, self.storage, image_converter=self.image_converter)

        logger.info(
            f"[BACKEND] ready: text={type(self.text_generator).__name__} "
            f"image={type(self.image_generator).__name__} storage={type(self.storage).__name__}"
        )

    def database_ok(self) -> bool:
        session = self.SessionFactory()
        try:
            session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"[HEALTH] database check failed: {e}")
            return False
        finally:
            session.close()
