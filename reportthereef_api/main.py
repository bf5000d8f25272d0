from pathlib import Path
from contextlib import asynccontextmanager

import yaml
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import init_db
from .errors import CheckinError
from .logconfig import configure_logging
from .routers import anchorages, checkins, health, profile


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db()
        yield

    app = FastAPI(title='Report The Reef API', version='0.1.0', lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    schema_path = Path('openapi.yaml')
    if schema_path.exists():
        with schema_path.open() as f:
            openapi_schema = yaml.safe_load(f)

        def custom_openapi():
            return openapi_schema

        app.openapi = custom_openapi

    @app.exception_handler(CheckinError)
    async def checkin_error_handler(request: Request, exc: CheckinError):
        return JSONResponse({'detail': exc.message}, status_code=exc.status_code)

    app.include_router(health.router)
    app.include_router(anchorages.router)
    app.include_router(checkins.router)
    app.include_router(profile.router)

    return app


app = create_app()


if __name__ == '__main__':  # pragma: no cover
    import uvicorn
    uvicorn.run('reportthereef_api.main:app', host='0.0.0.0', port=3000, reload=True)
