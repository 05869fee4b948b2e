"""Pytest 配置"""

import pytest

from panelgrid.telemetry import metrics


@pytest.fixture(autouse=True)
def reset_metrics():
    """每个测试前后重置指标"""
    metrics.reset()
    yield
    metrics.reset()
