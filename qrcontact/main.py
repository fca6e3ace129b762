from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from qrcontact.core.config import settings
from qrcontact.core.http_hardening import install_error_handlers, install_http_hardening
from qrcontact.core.logging import configure_logging
from qrcontact.api.router import router as public_router
from qrcontact.services.passcode_delivery import delivery_health

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title=settings.APP_NAME, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_http_hardening(app)
install_error_handlers(app)

app.include_router(public_router)

@app.get("/", include_in_schema=False)
def landing():
    return JSONResponse({"service": settings.APP_NAME, "status": "ok"})

@app.get("/health")
def health():
    return {"status": "ok", "delivery": delivery_health()}
