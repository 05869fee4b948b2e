"""Web 服务模块"""

from panelgrid.web.app import create_app
from panelgrid.web.server import LayoutServer

__all__ = ["create_app", "LayoutServer"]
