"""
Credential broker: OAuth 2.0 Authorization Server in front of an OAuth 1.0a provider.
Well-known metadata, DCR, /oauth2/authorize, /oauth2/token, upstream connect routes,
session API. All state is encrypted in the key-value store.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from broker.authorize import router as authorize_router
from broker.config import ENCRYPTION_KEY, LOG_LEVEL
from broker.connect import router as connect_router
from broker.crypto import validate_key
from broker.database import init_db
from broker.errors import register_exception_handlers
from broker.register import router as register_router
from broker.session_routes import router as session_router
from broker.token_endpoint import router as token_router
from broker.well_known import router as well_known_router

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Refuse to start without a valid key; create the store table."""
    validate_key(ENCRYPTION_KEY)
    init_db()
    yield


app = FastAPI(title="Credential Broker", version="1.0.0", lifespan=lifespan)
register_exception_handlers(app)
app.include_router(well_known_router, tags=["well-known"])
app.include_router(register_router, tags=["register"])
app.include_router(authorize_router, tags=["authorize"])
app.include_router(token_router, tags=["token"])
app.include_router(connect_router, tags=["connect"])
app.include_router(session_router, tags=["session"])


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "broker"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "broker.main:app",
        host="127.0.0.1",
        port=8787,
        reload=True,
    )
