"""
Pytest configuration shared by the whole tree.
Uses in-memory SQLite database for fast, isolated tests.
"""
import os

# Set testing environment before importing app
os.environ["TESTING"] = "True"
os.environ["DEBUG"] = "False"
os.environ.setdefault("VNPAY_HASH_SECRET", "test-vnpay-secret")
os.environ.setdefault("ZALOPAY_KEY1", "test-zalopay-key1")
os.environ.setdefault("ZALOPAY_KEY2", "test-zalopay-key2")
