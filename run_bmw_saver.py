# run_bmw_saver.py
import argparse
import logging
import threading
import sys

import uvicorn

from bmw_saver.api.server import app, attach_controller
from bmw_saver.config.errors import ConfigError
from bmw_saver.config.loader import read_config
from bmw_saver.config.watcher import ConfigWatcher
from bmw_saver.controller.scaling import ScalingController
from bmw_saver.k8s.client import core_v1_api
from bmw_saver.providers.identity import current_namespace
from bmw_saver.schedule.calendar import CalendarSyncError

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

log = logging.getLogger("launcher")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="bmw-saver: scales Kubernetes node pools down outside work hours"
    )
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to the configuration file")
    parser.add_argument(
        "-l", "--log-level", default="info", choices=sorted(LOG_LEVELS),
        help="Log level (debug, info, warn, error)",
    )
    parser.add_argument("--interval", type=float, default=60.0, help="Reconcile period in seconds")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host for the status API")
    parser.add_argument("--port", type=int, default=8080, help="Bind port for the status API")
    args = parser.parse_args()

    logging.basicConfig(
        level=LOG_LEVELS[args.log_level],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    log.debug(f"Starting application: config_file={args.config}")

    core_api = core_v1_api()

    try:
        cfg = read_config(args.config)
        controller = ScalingController(core_api, cfg)
    except (ConfigError, CalendarSyncError) as e:
        log.error(f"Failed to start controller: {e}")
        return 1

    # Изменения конфигурации (файл или ConfigMap) применяются на лету
    watcher = ConfigWatcher(args.config, core_api, current_namespace())
    watcher.on_config_change(controller.apply_configuration)
    watcher.start()

    stop = threading.Event()
    loop = threading.Thread(
        target=controller.run, kwargs={"interval": args.interval, "stop_event": stop},
        name="scaling-controller", daemon=True,
    )
    loop.start()

    attach_controller(controller)
    try:
        uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.replace("warn", "warning"))
    finally:
        stop.set()
        watcher.stop()
        controller.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
