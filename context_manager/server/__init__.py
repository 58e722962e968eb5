"""
Stdio JSON-RPC server: framing, dispatch, lifecycle and configuration.
"""

from .config import ServerConfig, get_config, load_config
from .dispatcher import DispatcherState, ProtocolDispatcher
from .framing import ByteFrameReader, FrameReader
from .lifecycle import LifecycleManager
from .main import build_registry, run, run_server
from .stdio_transport import OutputChannel, StdioServer

__all__ = [
    "ByteFrameReader",
    "DispatcherState",
    "FrameReader",
    "LifecycleManager",
    "OutputChannel",
    "ProtocolDispatcher",
    "ServerConfig",
    "StdioServer",
    "build_registry",
    "get_config",
    "load_config",
    "run",
    "run_server",
]
