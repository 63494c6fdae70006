from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ConfigCacheCorrupt
from .utils import LOCKS_DIR

import json
import jsonschema  # type: ignore
import logging
import os
import tempfile


CONFIG_FILE = "config.json"


class ConfigCache(object):
    """Persisted connection configs, one `config.json` per role directory.

    Callers must hold the role's lock around `load_if_present` and `store`.
    Entries never expire: they live as long as the locks root does.
    """

    def __init__(self, locks_dir=LOCKS_DIR, schemas: Optional[Dict[str, dict]] = None):
        self.locks_dir = Path(locks_dir)
        self.validators = {}
        for role, schema in (schemas or {}).items():
            self.register_schema(role, schema)

    def register_schema(self, role: str, schema: dict) -> None:
        self.validators[role] = jsonschema.Draft7Validator(schema)

    def path(self, role: str) -> Path:
        return self.locks_dir / role / CONFIG_FILE

    def load_if_present(self, role: str) -> Optional[Dict[str, Any]]:
        path = self.path(role)
        logging.info("Checking for config file %s", path)
        try:
            with open(str(path), 'r', encoding='utf-8') as f:
                raw = f.read()
        except FileNotFoundError:
            return None

        try:
            config = json.loads(raw)
        except ValueError as e:
            raise ConfigCacheCorrupt(role, str(path), "invalid JSON: {}".format(e))

        if not isinstance(config, dict):
            raise ConfigCacheCorrupt(role, str(path), "expected a JSON object")

        validator = self.validators.get(role)
        if validator is not None:
            try:
                validator.validate(config)
            except jsonschema.ValidationError as e:
                raise ConfigCacheCorrupt(role, str(path), e.message)

        logging.info("Found config file for %s, reusing the running instance", role)
        return config

    def store(self, role: str, config: Dict[str, Any]) -> None:
        """Write `config` atomically: readers see the old file or the new one."""
        path = self.path(role)
        os.makedirs(str(path.parent), exist_ok=True)

        fd, tmpname = tempfile.mkstemp(prefix=".config-", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(config, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmpname, str(path))
        except BaseException:
            os.unlink(tmpname)
            raise

        logging.info("Config file written to %s", path)
