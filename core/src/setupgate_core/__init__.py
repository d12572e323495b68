from setupgate_core.config import CoreConfig, load_core_config
from setupgate_core.envfile import EnvFileStore
from setupgate_core.home import SetupGatePaths, ensure_setupgate_layout, resolve_setupgate_home
from setupgate_core.identity import AdminIdentity, IdentityStore
from setupgate_core.sessions import InMemorySessionStore, Session, SessionStore
from setupgate_core.setup_state import SetupState, SetupStateMachine

__version__ = "0.1.0"

__all__ = [
    "AdminIdentity",
    "CoreConfig",
    "EnvFileStore",
    "IdentityStore",
    "InMemorySessionStore",
    "Session",
    "SessionStore",
    "SetupGatePaths",
    "SetupState",
    "SetupStateMachine",
    "__version__",
    "ensure_setupgate_layout",
    "load_core_config",
    "resolve_setupgate_home",
]
