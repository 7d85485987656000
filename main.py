# main.py
import os
if os.getenv("DEBUGPY", "0") == "1":
    import debugpy
    debugpy.listen(("0.0.0.0", 5678))

from config.logging_config import configure_logging

configure_logging()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config.settings import CORS_ORIGINS
from middleware.rate_limit import limiter
from middleware.request_logging import RequestLoggingMiddleware
from routers.cot_routes import router as cot_router
from routers.pricing_routes import router as pricing_router


app = FastAPI(title="COT Positioning API")

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)

# Include routers
app.include_router(cot_router, prefix="/api/cot")
app.include_router(pricing_router, prefix="/api/pricing")


@app.get("/health")
def health():
    return {"status": "ok"}
