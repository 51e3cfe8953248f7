from .api import router
from .config import Settings, load_config
from .core.logger import setup_logging
from .core.setup import create_application, lifespan_factory
from .core.uvicorn_config import setup_uvicorn_logging

setup_logging()
setup_uvicorn_logging()

settings = Settings.from_dict(load_config())

app = create_application(
    router=router, settings=settings, lifespan=lifespan_factory(settings)
)
