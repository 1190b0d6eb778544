"""Environment-driven configuration for the Business Connect API."""
from __future__ import annotations

import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")
    ENV = os.environ.get("ENV", "development")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///business_connect.sqlite3")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Frontend origin allowed to send credentialed requests
    CLIENT_URL = os.environ.get("CLIENT_URL", "http://localhost:5173")

    # Auth tokens and the cookie carrying them
    TOKEN_MAX_AGE = int(os.environ.get("TOKEN_MAX_AGE", 30 * 24 * 60 * 60))
    AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "jwt")
    AUTH_COOKIE_SECURE = os.environ.get("AUTH_COOKIE_SECURE", "1") in {"1", "true", "True"}

    # "per_item": every list fetch counts a view for each listed business.
    # "none": only single-business reads count.
    LIST_VIEW_POLICY = os.environ.get("LIST_VIEW_POLICY", "per_item")
    MAX_SERVICES = 5

    # Image host (S3)
    AWS_S3_BUCKET = os.environ.get("AWS_S3_BUCKET", "business-connect-images")
    BUSINESS_ICON_FOLDER = "business_icons"
