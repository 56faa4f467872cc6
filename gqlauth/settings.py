import os
import json

CONFIG_PATH = os.path.join(os.path.dirname(__file__), "server.json")

config_data = {}
if os.path.exists(CONFIG_PATH):
    with open(CONFIG_PATH) as f:
        config_data = json.load(f)

SECRET_KEY = os.getenv("SECRET_KEY", config_data.get("SECRET_KEY", "fallback-secret"))
ALGORITHM = os.getenv("ALGORITHM", config_data.get("ALGORITHM", "HS256"))
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", config_data.get("ACCESS_TOKEN_EXPIRE_MINUTES", 30)))
AUTH_DIRECTIVE = os.getenv("AUTH_DIRECTIVE", config_data.get("AUTH_DIRECTIVE", "auth"))
FILTER_SCHEMA = os.getenv("FILTER_SCHEMA", str(config_data.get("FILTER_SCHEMA", "1"))) == "1"
PORT = int(os.getenv("PORT", config_data.get("PORT", 5000)))
