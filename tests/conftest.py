#!/usr/bin/env python3
"""
Pytest configuration shared by the unit tests.
"""

import pytest

from cadet_analytics.config import reset_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    """Re-read settings for every test so env overrides never leak."""
    reset_settings()
    yield
    reset_settings()
