"""FastAPI 应用创建"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import uvicorn

from panelgrid import config
from panelgrid.layout.storage import FileStorage, Storage
from panelgrid.layout.store import LayoutStore
from panelgrid.telemetry import get_logger, setup_logging
from panelgrid.web.server import LayoutServer
from panelgrid.workspace.editors import EditorTabs
from panelgrid.workspace.sessions import WorkspaceSessionManager
from panelgrid.workspace.terminals import TerminalSessions

logger = get_logger(__name__)


def create_app(
    storage: Storage | None = None,
    executor: ThreadPoolExecutor | None = None,
) -> LayoutServer:
    """创建 Web 应用

    Args:
        storage: 布局和 session 的存储，None 表示全部保存在内存
        executor: 在请求路径之外执行快照写入
    """
    store = LayoutStore(
        storage=storage,
        editors=EditorTabs(),
        terminals=TerminalSessions(),
        executor=executor,
    )
    sessions = WorkspaceSessionManager(store, storage)
    session = sessions.init()
    logger.info(f"[App] Active workspace: {session.name} ({session.id})")
    return LayoutServer(store, sessions)


async def start_server():
    """启动服务器"""
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="panelgrid-persist")
    server = create_app(FileStorage(config.DATA_DIR), executor)

    uvicorn_config = uvicorn.Config(
        server.app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower()
    )
    uvicorn_server = uvicorn.Server(uvicorn_config)

    logger.info(f"[App] panelgrid starting at http://localhost:{config.PORT} (data: {config.DATA_DIR})")

    try:
        await uvicorn_server.serve()
    finally:
        server.sessions.save_current()
        executor.shutdown(wait=True)


def main():
    """入口函数"""
    setup_logging()
    try:
        asyncio.run(start_server())
    except KeyboardInterrupt:
        print("\nServer stopped")
