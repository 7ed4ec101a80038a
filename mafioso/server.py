import logging
import logging.handlers
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import APIRouter, FastAPI
from starlette.middleware.cors import CORSMiddleware

from mafioso.deps import get_store
from mafioso.routers import bullet_factory, combat, crimes, garage, marketplace, players, store, travel

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')
# Also load project root .env if present (e.g. when running from root)
load_dotenv(ROOT_DIR.parent / '.env')

logger = logging.getLogger(__name__)


def configure_logging():
    """Console plus a file that rolls over daily and keeps the last 30 days."""
    log_dir = Path(os.environ.get('LOG_DIR', ROOT_DIR.parent / 'logs'))
    log_dir.mkdir(exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.handlers.TimedRotatingFileHandler(
                log_dir / 'server.log',
                when='midnight',
                interval=1,
                backupCount=30,
                encoding='utf-8'
            )
        ]
    )


def create_app() -> FastAPI:
    app = FastAPI(title="Mafioso")

    @app.get("/")
    def root():
        return {"status": "ok"}

    api_router = APIRouter(prefix="/api")
    players.register(api_router)
    crimes.register(api_router)
    combat.register(api_router)
    store.register(api_router)
    travel.register(api_router)
    garage.register(api_router)
    bullet_factory.register(api_router)
    marketplace.register(api_router)
    app.include_router(api_router)

    # CORS: with credentials=True you must list explicit origins (not "*")
    cors_origins = [o.strip() for o in os.environ.get('CORS_ORIGINS', '*').split(',') if o.strip()]
    allow_credentials = bool(cors_origins) and '*' not in cors_origins
    if not cors_origins:
        cors_origins = ['*']
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=allow_credentials,
        allow_origins=cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup_db():
        provider = app.dependency_overrides.get(get_store, get_store)
        if provider is get_store and not os.environ.get('MONGO_URL'):
            logger.warning("MONGO_URL not set; skipping index creation")
            return
        await provider().ensure_indexes()

    return app


configure_logging()
app = create_app()
