import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.live_sheet import LiveSheet
from backend.routes import router
from charsheet.config import Settings, load_settings
from charsheet.core import SheetCore, core_from_settings

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, core: SheetCore | None = None) -> FastAPI:
    if core is None:
        core = core_from_settings(settings or load_settings())
    sheet = LiveSheet()
    sheet.bind(core.autosave)
    current = core.store.current_id()
    if current:
        sheet.project(core.store.load(current))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        core.autosave.start()
        logger.info("Character sheet started (current character: %s)", core.store.current_id())
        yield
        if core.store.current_id():
            await core.autosave.flush()
        await core.autosave.stop()

    app = FastAPI(title="Character Sheet", lifespan=lifespan)
    app.state.core = core
    app.state.sheet = sheet
    app.include_router(router, prefix="/api")
    return app
