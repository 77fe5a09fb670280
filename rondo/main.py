import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from rondo.core.config import settings
from rondo.core.http_hardening import install_error_handlers, install_http_hardening
from rondo.api.router import router as api_router
from rondo.services.sms_service import log_configuration_warnings, sms_provider_health

logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logging.getLogger("rondo").setLevel(str(settings.LOG_LEVEL or "INFO").upper())


@asynccontextmanager
async def lifespan(_app: FastAPI):
    log_configuration_warnings()
    yield


app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_http_hardening(app)
install_error_handlers(app)

app.include_router(api_router)

@app.get("/", include_in_schema=False)
def landing():
    return JSONResponse({"service": settings.APP_NAME, "status": "ok"})

@app.get("/health")
def health():
    return {"status": "ok"}

@app.get("/health/sms")
def health_sms():
    return sms_provider_health()
