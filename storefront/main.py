# storefront/main.py
import locale
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .admin.router import router as admin_router
from .auth.persistence import JsonFileStorage
from .auth.router import dev_router as auth_dev_router
from .auth.router import router as auth_router
from .auth.store import SessionStore
from .catalog.router import router as catalog_router
from .config import Settings, setup_logging
from .storage import OrderRepository, ProductRepository, UserRepository, load_seed


logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, storage=None, seed=None) -> FastAPI:
    """Build the application and everything it owns.

    The repositories and the session store are created here and hung on
    ``app.state``; routes reach them through the request. Tests pass
    their own ``settings``, session ``storage`` and ``seed`` records.
    """
    settings = settings or Settings.from_env()
    if storage is None:
        storage = JsonFileStorage(settings.session_file)
    if seed is None:
        seed = load_seed()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # queued session snapshot writes land before exit
        app.state.session.close()

    app = FastAPI(
        lifespan=lifespan,
        title="Storefront API",
        description=(
            "Product catalogue with search, filters and pagination, "
            "a mock-or-remote session store with user/admin roles, "
            "and admin management of products, orders and users."
        ),
        version="1.0.0",
    )

    app.state.settings = settings
    app.state.products = ProductRepository(seed.get("products"))
    app.state.orders = OrderRepository(seed.get("orders"))
    app.state.users = UserRepository(seed.get("users"))
    app.state.session = SessionStore.from_settings(settings, storage=storage)

    app.include_router(catalog_router)
    app.include_router(auth_router)
    app.include_router(admin_router)
    if settings.dev_auth:
        app.include_router(auth_dev_router)
        logger.warning("Developer login routes are enabled")

    @app.get("/")
    def health_check():
        return {
            "status": "ok",
            "mode": "mock" if settings.use_mock else "api",
        }

    return app


def set_collation() -> None:
    """Adopt the environment's LC_COLLATE for the catalogue title sort.

    Python starts under the C locale, where title ordering falls back to
    code points of the case-folded titles.
    """
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as exc:
        logger.warning("Keeping C collation, environment locale unavailable: %s", exc)


def run() -> None:
    import uvicorn

    settings = Settings.from_env()
    setup_logging(settings.log_level)
    set_collation()
    uvicorn.run(create_app(settings), host="127.0.0.1", port=8000)


if __name__ == "__main__":
    run()
