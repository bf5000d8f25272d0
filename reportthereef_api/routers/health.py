import logging
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from ..database import engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=['Internal'])


@router.get('/health')
def health():
    try:
        with engine.connect() as conn:
            conn.execute(text('SELECT 1'))
        return {'status': 'ok'}
    except Exception:
        logger.exception('Database connection failed')
        return JSONResponse({'status': 'error'}, status_code=503)


@router.get('/db')
def db_info():
    """Lightweight DB diagnostics for local dev.
    Returns masked connection URL and a connectivity check result.
    """
    payload = {
        'url': engine.url.render_as_string(hide_password=True),
        'backend': engine.url.get_backend_name(),
        'driver': engine.url.get_driver_name(),
        'ok': True,
        'error': None,
    }
    try:
        with engine.connect() as conn:
            conn.exec_driver_sql('SELECT 1')
    except Exception as e:  # pragma: no cover
        logger.exception('Database connection failed')
        payload['ok'] = False
        payload['error'] = str(e)
    return JSONResponse(payload)
