"""
Pytest bootstrap.
Settings are read at import time, so the environment must be set up before
any application module is imported.
"""
import os

os.environ["TESTING"] = "True"
os.environ["DEBUG"] = "False"
os.environ.setdefault("LOG_LEVEL", "WARNING")
