from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kbankapi.core.kplus_client import AuthenticatedClient, KPlusClient
from kbankapi.core.session import Session
from kbankapi.core.state_store import StateStore

from .config import Settings, settings as default_settings
from .exception_handlers import setup_exception_handlers
from .routers import account, qr, transfers
from .services.qr import decode_qr_image

logger = logging.getLogger("kbankapi.backend")

ClientFactory = Callable[[Dict[str, Any], Settings], AuthenticatedClient]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def default_client_factory(state: Dict[str, Any], settings: Settings) -> AuthenticatedClient:
    return KPlusClient(api_base_url=settings.api_base_url, pin=settings.pin or "", state=state)


def build_session(client: AuthenticatedClient, settings: Settings) -> Session:
    if not settings.account_no:
        raise RuntimeError("ACCOUNT_NO must be configured.")
    return Session(
        client,
        settings.account_no,
        settings.account_type,
        bank_info_ttl=settings.bank_info_cache_ttl,
        acquire_timeout=settings.session_acquire_timeout,
        call_timeout=settings.session_call_timeout,
        activity_table_size=settings.activity_table_size,
        transfer_table_size=settings.transfer_table_size,
    )


def create_app(
    settings: Optional[Settings] = None,
    client_factory: Optional[ClientFactory] = None,
    qr_decoder: Optional[Callable[[bytes], str]] = None,
) -> FastAPI:
    settings = settings or default_settings
    client_factory = client_factory or default_client_factory
    _configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Bootstrapping K PLUS gateway for account %s", settings.account_no)
        # A missing or corrupt state file aborts start-up.
        store = StateStore(settings.state_file)
        state = store.load()

        session = build_session(client_factory(state, settings), settings)
        store.start()
        session.add_state_observer(store.notify)
        app.state.session = session
        app.state.state_store = store
        try:
            yield
        finally:
            await store.stop()
            await session.close()
            app.state.session = None
            logger.info("K PLUS gateway stopped")

    app = FastAPI(title=settings.title, version=settings.version, lifespan=lifespan)
    app.state.session = None
    app.state.qr_decoder = qr_decoder or decode_qr_image

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    setup_exception_handlers(app)
    app.include_router(account.router)
    app.include_router(transfers.router)
    app.include_router(qr.router)
    return app


app = create_app()


def main() -> None:
    import uvicorn

    logger.info("App is running at port: %s", default_settings.port)
    uvicorn.run(app, host="0.0.0.0", port=default_settings.port)
