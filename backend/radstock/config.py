# backend/radstock/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/radstock.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///radstock.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sale numbers look like RS20261019143005417
    SALE_NUMBER_PREFIX = os.environ.get("SALE_NUMBER_PREFIX", "RS")

    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))

    # Printed on receipts
    RECEIPT_COMPANY_NAME = os.environ.get("RECEIPT_COMPANY_NAME", "RadiatorStock NZ")
    RECEIPT_COMPANY_ADDRESS = os.environ.get(
        "RECEIPT_COMPANY_ADDRESS", "123 Main Street, Auckland, New Zealand"
    )
    RECEIPT_COMPANY_PHONE = os.environ.get("RECEIPT_COMPANY_PHONE", "+64 9 123 4567")
    RECEIPT_COMPANY_EMAIL = os.environ.get("RECEIPT_COMPANY_EMAIL", "sales@radiatorstock.co.nz")
