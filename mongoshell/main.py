import uvicorn
from fastapi import FastAPI

from .config import get_settings
from .logging_config import configure_logging
from .routes import router

configure_logging(get_settings().log_level)

app = FastAPI(title="mongoshell")
app.include_router(router)


def run():
    uvicorn.run("mongoshell.main:app", host="0.0.0.0", port=8000)
