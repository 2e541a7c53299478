# bmw_saver/config/watcher.py
from __future__ import annotations

import hashlib
import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional

from kubernetes import client, watch
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from ..model.config import Config
from ..types import Namespace
from .errors import ConfigError
from .loader import read_config, read_config_from_bytes

log = logging.getLogger(__name__)

CONFIGMAP_NAME = "bmw-saver-config"
CONFIGMAP_KEY = "config.yaml"
FILE_POLL_INTERVAL = 10.0
WATCH_TIMEOUT = 300
WATCH_RETRY_DELAY = 5.0


def _digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class ConfigWatcher:
    """
    Следит за двумя источниками конфигурации:
      - файлом (опрос содержимого раз в poll_interval);
      - ConfigMap bmw-saver-config (kubernetes watch, события MODIFIED).

    Валидная новая конфигурация отдаётся всем подписчикам, невалидная
    логируется и игнорируется.
    """

    def __init__(
        self,
        config_path: str | Path,
        core_api: Optional[client.CoreV1Api],
        namespace: Namespace,
        poll_interval: float = FILE_POLL_INTERVAL,
        configmap_name: str = CONFIGMAP_NAME,
    ):
        self.config_path = Path(config_path)
        self.core_api = core_api
        self.namespace = namespace
        self.poll_interval = poll_interval
        self.configmap_name = configmap_name

        self._callbacks: List[Callable[[Config], None]] = []
        self._callbacks_lock = threading.Lock()
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []
        self._watch: Optional[watch.Watch] = None
        self._file_digest = self._read_digest()

    def on_config_change(self, callback: Callable[[Config], None]) -> None:
        with self._callbacks_lock:
            self._callbacks.append(callback)

    def _notify(self, cfg: Config) -> None:
        with self._callbacks_lock:
            callbacks = list(self._callbacks)
        for cb in callbacks:
            # ошибка одного подписчика не должна останавливать наблюдение
            try:
                cb(cfg)
            except Exception:
                log.exception(f"Config change callback {cb!r} failed")

    # --- файл ---

    def _read_digest(self) -> Optional[str]:
        try:
            return _digest(self.config_path.read_bytes())
        except OSError:
            return None

    def check_file(self) -> bool:
        """Один шаг опроса файла. True, если изменение применено."""
        digest = self._read_digest()
        if digest is None or digest == self._file_digest:
            return False
        self._file_digest = digest
        log.info(f"Config file changed, reloading: path={self.config_path}")
        try:
            cfg = read_config(self.config_path)
        except ConfigError as e:
            log.error(f"Failed to reload config file: {e}")
            return False
        self._notify(cfg)
        return True

    def _poll_file(self) -> None:
        while not self._stop.wait(self.poll_interval):
            try:
                self.check_file()
            except Exception:
                log.exception(f"Unexpected error while checking config file {self.config_path}")

    # --- ConfigMap ---

    def handle_configmap_event(self, event: dict) -> bool:
        if event.get("type") != "MODIFIED":
            return False
        cm = event.get("object")
        if cm is None or cm.metadata is None or cm.metadata.name != self.configmap_name:
            return False
        log.info("ConfigMap updated, reloading config")
        raw = (cm.data or {}).get(CONFIGMAP_KEY, "")
        try:
            cfg = read_config_from_bytes(raw)
        except ConfigError as e:
            log.error(f"Failed to parse updated config: {e}")
            return False
        self._notify(cfg)
        return True

    def _watch_configmap(self) -> None:
        while not self._stop.is_set():
            self._watch = watch.Watch()
            try:
                for event in self._watch.stream(
                    self.core_api.list_namespaced_config_map,
                    namespace=self.namespace,
                    field_selector=f"metadata.name={self.configmap_name}",
                    timeout_seconds=WATCH_TIMEOUT,
                ):
                    self.handle_configmap_event(event)
                    if self._stop.is_set():
                        break
            except ApiException as e:
                log.error(f"ConfigMap watch failed: {e.status} {e.reason}")
                self._stop.wait(WATCH_RETRY_DELAY)
            except HTTPError as e:
                log.error(f"ConfigMap watch connection error: {e}")
                self._stop.wait(WATCH_RETRY_DELAY)
            except Exception:
                log.exception("Unexpected ConfigMap watch error")
                self._stop.wait(WATCH_RETRY_DELAY)
            finally:
                self._watch.stop()

    # --- запуск ---

    def start(self) -> None:
        targets = [("config-file-watcher", self._poll_file)]
        if self.core_api is not None:
            targets.append(("configmap-watcher", self._watch_configmap))
        for name, target in targets:
            t = threading.Thread(target=target, name=name, daemon=True)
            t.start()
            self._threads.append(t)
        log.info(f"Config watcher started: path={self.config_path} configmap={self.namespace}/{self.configmap_name}")

    def stop(self) -> None:
        self._stop.set()
        if self._watch is not None:
            self._watch.stop()
