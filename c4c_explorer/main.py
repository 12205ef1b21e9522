import uvicorn
from prometheus_fastapi_instrumentator import Instrumentator

from c4c_explorer.core.logging import setup_logging
from c4c_explorer.settings import settings
from . import app as api_app

setup_logging(settings.LOG_LEVEL)
app = api_app
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app)


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


def run() -> None:
    uvicorn.run("c4c_explorer.main:app", host=settings.HOST, port=settings.PORT)
