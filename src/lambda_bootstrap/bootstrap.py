import logging
from typing import Mapping, Optional

from .config import RuntimeConfig
from .errors import ConfigError
from .logger import get_log_level, setup_logging
from .runtime_api_client import RuntimeApiClient
from .runtime_loop import RuntimeLoop

log = logging.getLogger(__name__)


def main(environ: Optional[Mapping[str, str]] = None) -> int:
    """
    Start the runtime: resolve the handler, then serve invocations forever.

    Returns:
        1 if the handler could not be initialized, 2 if the runtime
        configuration is missing. A running loop never returns.
    """
    try:
        config = RuntimeConfig.from_env(environ)
    except ConfigError as e:
        setup_logging(get_log_level(environ))
        log.error(f"Invalid runtime configuration: {e}")
        return 2

    setup_logging(config.log_level)

    client = RuntimeApiClient(config.runtime_api)
    loop = RuntimeLoop.initialize(client, config.task_root, config.handler)
    if loop is None:
        client.close()
        return 1

    log.info(f"Runtime ready: handler={config.handler} task_root={config.task_root}")
    with client:
        loop.run()

    return 0
