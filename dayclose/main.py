import logging

from fastapi import FastAPI

from dayclose.config import settings
from dayclose.routers import till

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='Day Close')

app.include_router(till.router)


@app.get('/healthz')
def healthz() -> dict:
    return {'status': 'ok'}
