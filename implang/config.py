"""Imp Configuration — project-level .imprc.yml support.

Loads configuration from .imprc.yml (or .imprc.yaml, .imprc.json) found by
walking up from the working directory. Lets a project pin the soundness
harness settings it runs with.

Example .imprc.yml:
    generator:
      fault_rate: 512
      allow_loops: true
      max_depth: 10
    harness:
      tests: 2000
      max_tests: 20000
      min_tests_passed: 500
      seed: 1234
      workers: 0          # 0 = cpu_count
    loop_limit: 1000
    log_level: info
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

import yaml

from implang.errors import ConfigError
from implang.evaluator import MAX_LOOP_ITERATIONS
from implang.generator import GeneratorConfig
from implang.harness import HarnessConfig

LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass
class ImpConfig:
    """Project-level Imp configuration."""
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    harness: HarnessConfig = field(default_factory=HarnessConfig)
    loop_limit: int = MAX_LOOP_ITERATIONS
    log_level: str = "warning"
    # File the configuration was read from, if any
    source: Optional[str] = None


# ---------------------------------------------------------------------------
# Config file names (in priority order)
# ---------------------------------------------------------------------------

_CONFIG_FILES = [
    ".imprc.yml",
    ".imprc.yaml",
    ".imprc.json",
    "imp.config.yml",
    "imp.config.json",
]


def find_config(start_dir: str = ".") -> Optional[str]:
    """Find the nearest config file by walking up from start_dir."""
    current = os.path.abspath(start_dir)
    while True:
        for name in _CONFIG_FILES:
            path = os.path.join(current, name)
            if os.path.isfile(path):
                return path
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return None


def load_config(path: Optional[str] = None, start_dir: str = ".") -> ImpConfig:
    """Load configuration from a file.

    If no path is given, searches for a config file starting from start_dir.
    If no config file is found, returns defaults. A file that cannot be
    parsed, or that holds values of the wrong shape, raises ConfigError.
    """
    if path is None:
        path = find_config(start_dir)

    if path is None:
        return ImpConfig()

    try:
        with open(path, "r") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if path.endswith(".json"):
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigError(f"{path}: {e}") from e
    else:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"{path}: {e}") from e

    config = _dict_to_config(data or {})
    config.source = path
    return config


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {type(section).__name__}")
    return section


def _known(section: Dict[str, Any], cls: type) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in section.items() if k in names}


def _dict_to_config(data: Dict[str, Any]) -> ImpConfig:
    """Convert a parsed dict to ImpConfig. Unknown keys are ignored."""
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a mapping, got {type(data).__name__}")
    config = ImpConfig()

    generator = _known(_section(data, "generator"), GeneratorConfig)
    if "weights" in generator and isinstance(generator["weights"], dict):
        generator["weights"] = {**config.generator.weights, **generator["weights"]}
    try:
        for key in ("ident_length", "nat_range"):
            if key in generator:
                generator[key] = tuple(generator[key])
        config.generator = GeneratorConfig(**generator)
        config.harness = HarnessConfig(**_known(_section(data, "harness"), HarnessConfig))
    except (TypeError, ValueError) as e:
        raise ConfigError(str(e)) from e

    if "loop_limit" in data:
        try:
            config.loop_limit = int(data["loop_limit"])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"loop_limit: {e}") from e
        if config.loop_limit < 0:
            raise ConfigError("loop_limit must be >= 0")
    if "log_level" in data:
        level = str(data["log_level"]).lower()
        if level not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        config.log_level = level

    return config
