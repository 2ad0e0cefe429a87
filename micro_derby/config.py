import json
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

REPO_ROOT = Path(__file__).resolve().parents[1]
CONFIG_FILE_PATH = REPO_ROOT / 'configs' / 'derby_settings.json'


def load_config(path=CONFIG_FILE_PATH):
    """
    Loads the settings file. Returns None when it is missing or unreadable,
    in which case every lookup falls back to its default.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            config = json.load(f)
        return config
    except FileNotFoundError:
        print(f"[Config] No settings file at {path}; using built-in defaults.")
        return None
    except Exception as e:
        print(f"[Config] Could not parse settings file {path}: {e}; using built-in defaults.")
        return None

# Load the config ONCE when the module is first imported
SETTINGS = load_config()


def get_config(key_path, default=None):
    """
    Safely gets a value from the loaded settings using a 'dot.path'.
    Example: get_config('perturbation.min_delay_ms', 200)
    """
    if not SETTINGS:
        return default

    try:
        value = SETTINGS
        for key in key_path.split('.'):
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def _env_float(name, default):
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        print(f"[Config] Ignoring non-numeric {name}={raw!r}.")
        return default


PENALTY_ENDPOINT = os.getenv(
    'DERBY_PENALTY_ENDPOINT',
    get_config('penalty.endpoint', 'http://192.168.4.1/lose'),
)
PENALTY_TIMEOUT = _env_float('DERBY_PENALTY_TIMEOUT', float(get_config('penalty.timeout_seconds', 2.0)))
FRAME_RATE = _env_float('DERBY_FRAME_RATE', float(get_config('race.frame_rate', 60)))
DEFAULT_DIFFICULTY = int(get_config('race.default_difficulty', 4))
MAX_FRAMES = int(get_config('race.max_frames', 10000))
PERTURBATION_DELAY_MS = (
    float(get_config('perturbation.min_delay_ms', 200)),
    float(get_config('perturbation.max_delay_ms', 600)),
)
DUST_COUNT = int(get_config('dust.count', 80))
RENDER_DPI = int(get_config('render.dpi', 100))
SHOW_OUTLINES = bool(get_config('render.show_outlines', True))
