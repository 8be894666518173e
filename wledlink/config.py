"""Configuration for wledlink"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
_repo_root = Path(__file__).parent.parent.resolve()
_env_file = _repo_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


# Simulation (demo mode, no real devices)
SIMULATE_DEVICES = os.getenv("SIMULATE_DEVICES", "false").lower() == "true"

# Device selection
WLED_HOST = os.getenv("WLED_HOST")
CONNECTIVITY = os.getenv("CONNECTIVITY", "local")  # local | remote | offline
REMOTE_ACCESS_ENABLED = os.getenv("REMOTE_ACCESS_ENABLED", "false").lower() == "true"
PREFER_BROKER_RELAY = os.getenv("PREFER_BROKER_RELAY", "false").lower() == "true"
FIREBASE_USER_ID = os.getenv("FIREBASE_USER_ID")
CONTROLLER_ID = os.getenv("CONTROLLER_ID")
CONTROLLER_IP = os.getenv("CONTROLLER_IP", "")
WEBHOOK_URL = os.getenv("WEBHOOK_URL", "")

# Device HTTP API timeouts (seconds)
WLED_HTTP_TIMEOUT_S = float(os.getenv("WLED_HTTP_TIMEOUT_S", "5"))
WLED_CONFIG_TIMEOUT_S = float(os.getenv("WLED_CONFIG_TIMEOUT_S", "15"))
WLED_INFO_TIMEOUT_S = float(os.getenv("WLED_INFO_TIMEOUT_S", "3"))

# Preset slots supported by the firmware
PRESET_ID_MIN = 1
PRESET_ID_MAX = 250

# Cloud relay (Firestore command queue)
RELAY_POLL_INTERVAL_S = float(os.getenv("RELAY_POLL_INTERVAL_S", "0.5"))
RELAY_COMMAND_TIMEOUT_S = float(os.getenv("RELAY_COMMAND_TIMEOUT_S", "30"))

_default_creds = str(_repo_root / "firebase-key.json")
FIREBASE_CREDENTIALS_PATH = os.getenv("FIREBASE_CREDENTIALS_PATH", _default_creds)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Broker relay (Lumina backend / MQTT)
BROKER_CACHE_TTL_S = float(os.getenv("BROKER_CACHE_TTL_S", "2"))
LUMINA_BACKEND_URL = os.getenv("LUMINA_BACKEND_URL", "http://localhost:3000")
LUMINA_BACKEND_TOKEN = os.getenv("LUMINA_BACKEND_TOKEN")
LUMINA_BACKEND_TIMEOUT_S = float(os.getenv("LUMINA_BACKEND_TIMEOUT_S", "10"))

MQTT_BROKER = os.getenv("MQTT_BROKER", "localhost")
MQTT_PORT = int(os.getenv("MQTT_PORT", "1883"))
MQTT_USERNAME = os.getenv("MQTT_USERNAME")
MQTT_PASSWORD = os.getenv("MQTT_PASSWORD")
MQTT_KEEPALIVE = int(os.getenv("MQTT_KEEPALIVE", "60"))
MQTT_CLIENT_ID = os.getenv("MQTT_CLIENT_ID", "wledlink")
MQTT_TOPIC_PREFIX = os.getenv("MQTT_TOPIC_PREFIX", "lumina")

# UDP pixel streaming
DDP_PORT = int(os.getenv("DDP_PORT", "4048"))
STREAM_FPS = int(os.getenv("STREAM_FPS", "60"))

# State poller
POLL_INTERVAL_S = float(os.getenv("POLL_INTERVAL_S", "1.5"))
POST_SETTLE_S = float(os.getenv("POST_SETTLE_S", "0.5"))
RECONNECT_INTERVAL_S = float(os.getenv("RECONNECT_INTERVAL_S", "10"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "logs/wledlink.log")

# Debug
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
