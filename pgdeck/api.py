from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pgdeck.config import DeckSettings, load_settings
from pgdeck.errors import Cancelled, NoPrimaryKey, NotConnected, PgDeckError, QueryFailed
from pgdeck.router.router import DeckRouter

ERROR_STATUS = {
    NotConnected: 503,
    QueryFailed: 502,
    Cancelled: 409,
    NoPrimaryKey: 409,
}


async def pgdeck_error_handler(request: Request, exc: PgDeckError) -> JSONResponse:
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def create_app(settings: DeckSettings | None = None, router: DeckRouter | None = None) -> FastAPI:
    settings = settings or load_settings()
    router = router or DeckRouter(settings=settings)

    app = FastAPI(title="pgdeck")
    app.add_exception_handler(PgDeckError, pgdeck_error_handler)
    app.include_router(router)
    app.state.deck = router
    return app
