"""
Configuration loader.
Reads settings from .env file and makes them available to the rest of the app.
"""

import os
from dotenv import load_dotenv

load_dotenv()

_PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))

# Site identity
SITE_NAME = os.getenv("SITE_NAME", "CodeByKavin")
SITE_URL = os.getenv("SITE_URL", "http://localhost:8501")

# Document store: one SQLite file holds listings, changelogs and the profile
STORE_DB_PATH = os.getenv("STORE_DB_PATH", os.path.join(_PROJECT_ROOT, "data", "store.db"))

# Which listings each browser has already rated, keyed by a device id
# kept in a long-lived cookie
RATED_APPS_PATH = os.getenv("RATED_APPS_PATH", os.path.join(_PROJECT_ROOT, "data", "rated_apps.json"))
DEVICE_COOKIE = os.getenv("DEVICE_COOKIE", "storefront_device")
DEVICE_COOKIE_DAYS = int(os.getenv("DEVICE_COOKIE_DAYS", "365"))

# Live subscriptions poll the database this often (seconds)
SUBSCRIPTION_POLL_SECONDS = float(os.getenv("SUBSCRIPTION_POLL_SECONDS", "1.0"))

# How many times a locked write transaction is retried before giving up
TRANSACTION_ATTEMPTS = int(os.getenv("TRANSACTION_ATTEMPTS", "5"))

# A browser session that has not checked in for this long is treated as closed
SESSION_IDLE_SECONDS = float(os.getenv("SESSION_IDLE_SECONDS", "60"))

# On-screen notices dismiss themselves after this many seconds
NOTICE_SECONDS = float(os.getenv("NOTICE_SECONDS", "5"))

# Page fade transition length (milliseconds)
FADE_MS = 300

PLACEHOLDER_SCREENSHOT = "https://placehold.co/800x600/1E1E2F/4AC0FF?text=No+Screenshot"
PLACEHOLDER_MOCKUP = "https://placehold.co/800x450/1E1E2F/4AC0FF?text=App+Screenshot"
PLACEHOLDER_AVATAR = "https://placehold.co/192x192/4AC0FF/0F111A?text={name}"
