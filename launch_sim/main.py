import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from launch_sim.api.routes import router as api_router
from launch_sim.utils.json_safety import SafeJSONResponse


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def create_app() -> FastAPI:
    app = FastAPI(
        title="Token Launch Simulator",
        default_response_class=SafeJSONResponse,
    )

    # ── CORS (local dashboard during development) ──
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://127.0.0.1:8000", "http://localhost:8000", "http://localhost:3000"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── API routes ──
    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


def run():
    import uvicorn

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    uvicorn.run(app, host="127.0.0.1", port=8000)
