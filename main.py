import logging
import os

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

import employees
import tasks
from database import db, ensure_indexes, get_db

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Workforce Records API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(employees.router)
app.include_router(tasks.router)


# -------------------- Errors --------------------
@app.exception_handler(RequestValidationError)
async def malformed_request(request: Request, exc: RequestValidationError):
    # Undecodable bodies and mistyped query params are client errors like any other
    return JSONResponse(
        status_code=400,
        content={"detail": {"error": "Malformed request", "details": jsonable_encoder(exc.errors())}},
    )


# -------------------- Startup --------------------
@app.on_event("startup")
def create_indexes():
    try:
        ensure_indexes(db)
        logger.info("[startup] Indexes ensured on %s", db.name)
    except Exception as e:
        logger.error("[startup] Index creation error: %s", e)


# -------------------- Basic routes --------------------
@app.get("/")
def read_root():
    return {"message": "Workforce Records API running"}


@app.get("/health")
def health(database: Database = Depends(get_db)):
    try:
        database.list_collection_names()
    except PyMongoError as exc:
        logger.warning("health check: database unreachable: %s", exc)
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": "unreachable"})
    return {"status": "ok", "database": "connected"}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
