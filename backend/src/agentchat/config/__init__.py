from .config_loader import get_data_dir, get_default_config, get_project_dir, load_config
from .settings import Settings

__all__ = ["Settings", "load_config", "get_default_config", "get_project_dir", "get_data_dir"]
