# photo_organizer/services/config_service.py
"""
Provides a singleton configuration service for the photo organizer.

This service is responsible for:
1. Loading `config.yaml` (or the file named by PHOTO_ORGANIZER_CONFIG) and
   checking the Gemini, export and UI settings before anything uses them.
2. Loading the Gemini API key from the environment or a `.env` file.
3. Setting up a centralized logging system for both console and file output.
"""
import yaml
import os
import logging
import sys
from pathlib import Path
import dotenv
import threading
from typing import Any, List, Optional

CONFIG_PATH_ENV = "PHOTO_ORGANIZER_CONFIG"
API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")

# The model call cannot be built without these.
REQUIRED_STRING_SETTINGS = ("vlm.model", "vlm.api_base")

# Optional, but must be positive integers when present. A null max_image_edge disables downscaling.
POSITIVE_INT_SETTINGS = (
    "vlm.api_timeout_seconds",
    "vlm.encode_workers",
    "vlm.max_image_edge",
    "vlm.max_request_bytes",
    "export.fetch_workers",
    "ui.folder_columns",
    "ui.gallery_columns",
    "ui.preview_columns",
)

_MISSING = object()


def lookup(settings: Any, key_path: str, default: Any = None) -> Any:
    """Follows a dot-separated path such as 'vlm.model' through nested mappings."""
    value = settings
    try:
        for key in key_path.split('.'):
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def validate_settings(settings: Any) -> List[str]:
    """
    Checks a loaded configuration for values the organizer cannot run with.

    Returns:
        One human-readable problem per bad setting; empty if the settings are usable.
    """
    if not isinstance(settings, dict):
        return [f"Top level must be a mapping, got {type(settings).__name__}."]

    problems = []
    for key_path in REQUIRED_STRING_SETTINGS:
        value = lookup(settings, key_path, _MISSING)
        if value is _MISSING:
            problems.append(f"'{key_path}' is required.")
        elif not isinstance(value, str) or not value.strip():
            problems.append(f"'{key_path}' must be a non-empty string, got {value!r}.")

    for key_path in POSITIVE_INT_SETTINGS:
        value = lookup(settings, key_path)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            problems.append(f"'{key_path}' must be a positive integer, got {value!r}.")
    return problems


class AppConfig:
    _instance: Optional['AppConfig'] = None
    _loaded: bool = False
    _lock: threading.Lock = threading.Lock()

    def __new__(cls, *args, **kwargs) -> 'AppConfig':
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(AppConfig, cls).__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        # Streamlit re-executes the script on every interaction; load only once.
        if not self._loaded:
            with self._lock:
                if not self._loaded:
                    dotenv.load_dotenv()
                    self.project_root = Path(__file__).resolve().parents[2]

                    self._load_yaml_config()
                    self._load_env_vars()
                    self._setup_logging()

                    self._loaded = True
                    logging.info(f"Configuration loaded; organizing with model '{self.get('vlm.model')}'.")

    def _load_yaml_config(self) -> None:
        """Loads and checks config.yaml. Any problem is fatal before the UI starts."""
        config_path = Path(os.getenv(CONFIG_PATH_ENV, self.project_root / 'config.yaml'))
        try:
            with open(config_path, 'r') as f:
                settings = yaml.safe_load(f) or {}
        except FileNotFoundError:
            print(f"FATAL: Configuration file not found at {config_path}", file=sys.stderr)
            sys.exit(1)
        except yaml.YAMLError as e:
            print(f"FATAL: Error parsing YAML configuration file: {e}", file=sys.stderr)
            sys.exit(1)

        problems = validate_settings(settings)
        if problems:
            print(f"FATAL: Invalid configuration in {config_path}:", file=sys.stderr)
            for problem in problems:
                print(f"  - {problem}", file=sys.stderr)
            sys.exit(1)
        self.yaml = settings

    def _load_env_vars(self) -> None:
        """Loads the Gemini API key. It is optional until a request is made."""
        self.gemini_api_key = next((os.getenv(name) for name in API_KEY_ENV_VARS if os.getenv(name)), None)

    def _setup_logging(self) -> None:
        """Configures the root logger for consistent logging across the app."""
        log_level_str = str(self.get('logging.level', 'INFO')).upper()
        log_level = getattr(logging, log_level_str, logging.INFO)

        root_logger = logging.getLogger()
        if root_logger.handlers:
            # Someone (Streamlit, pytest) configured logging already; only adjust the level.
            root_logger.setLevel(log_level)
            return

        log_dir = self.project_root / self.get('logging.directory', 'logs')
        log_dir.mkdir(exist_ok=True)
        log_file = log_dir / self.get('logging.filename', 'photo_organizer.log')

        logging.basicConfig(
            level=log_level,
            format='%(asctime)s - [%(levelname)s] - %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
            handlers=[
                logging.FileHandler(log_file),
                logging.StreamHandler(sys.stdout)
            ],
            force=True
        )

        # Image decoding and HTTP pooling are noisy at DEBUG.
        for noisy in ("urllib3", "requests", "PIL"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Retrieves a setting by dotted path, e.g. `config.get('ui.folder_columns', 4)`."""
        return lookup(self.yaml, key_path, default)

# Create the singleton instance that will be imported by other modules.
config = AppConfig()
