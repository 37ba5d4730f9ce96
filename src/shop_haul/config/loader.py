from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, MutableMapping, Optional, Sequence, Type

from pydantic import BaseModel

from shop_haul.config.models import (
    AppConfig,
    ConfigLoadRequest,
)

EPHEMERAL_CACHE_DIRNAME = "shop-haul-screenshots"


def _read_yaml_config(path: Path) -> dict[str, Any]:
    try:
        import yaml  # type: ignore[import-not-found]
    except ModuleNotFoundError as e:  # pragma: no cover
        raise ModuleNotFoundError(
            "Missing dependency: PyYAML is required to load the YAML config file. Install 'PyYAML'."
        ) from e

    if not path.exists():
        _ensure_default_config(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Top-level YAML must be a mapping, got: {type(data).__name__}")
    return data


def _ensure_default_config(target_path: Path) -> None:
    example_path = Path("examples/config.yaml")
    if not example_path.exists():
        return
    target_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(example_path, target_path)


def _load_dotenv_if_present(dotenv_path: Path) -> None:
    try:
        from dotenv import load_dotenv  # type: ignore[import-not-found]
    except ModuleNotFoundError as e:  # pragma: no cover
        raise ModuleNotFoundError(
            "Missing dependency: python-dotenv is required to load .env. Install 'python-dotenv'."
        ) from e

    if not dotenv_path.exists():
        return
    load_dotenv(dotenv_path=dotenv_path, override=False)


def _env_var_name_to_segments(env_var_name: str, prefix: str) -> Sequence[str]:
    remainder = env_var_name[len(prefix) :]
    parts = [p for p in remainder.split("__") if p]
    if not parts:
        raise ValueError(f"Invalid environment variable override name: {env_var_name}")
    return [p.lower() for p in parts]


def _nested_model(model: Type[BaseModel], field_name: str) -> Optional[Type[BaseModel]]:
    annotation = model.model_fields[field_name].annotation
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation
    return None


def _get_parent_mapping(config: MutableMapping[str, Any], path: Sequence[str]) -> MutableMapping[str, Any]:
    """
    Walk to the mapping holding the last segment of path.

    Sections omitted from the YAML file are created on demand as long as the
    path names a field of the configuration schema.
    """
    dotted = ".".join(path)
    cur: MutableMapping[str, Any] = config
    model: Type[BaseModel] = AppConfig
    for segment in path[:-1]:
        if segment not in model.model_fields:
            raise KeyError(f"Unknown configuration key path: {dotted}")
        nested = _nested_model(model, segment)
        if nested is None:
            raise TypeError(f"Configuration key path does not point to a mapping: {dotted}")
        next_value = cur.setdefault(segment, {})
        if not isinstance(next_value, dict):
            raise TypeError(f"Configuration key path does not point to a mapping: {dotted}")
        cur = next_value
        model = nested
    if path[-1] not in model.model_fields:
        raise KeyError(f"Unknown configuration key path: {dotted}")
    return cur


def _apply_env_overrides(config: MutableMapping[str, Any], env_prefix: str) -> set[str]:
    applied: set[str] = set()
    for name, value in os.environ.items():
        if not name.startswith(env_prefix):
            continue

        segments = _env_var_name_to_segments(name, env_prefix)
        parent = _get_parent_mapping(config, segments)
        leaf = segments[-1]

        # Pydantic handles type coercion/validation later.
        if leaf == "providers" and isinstance(value, str):
            parent[leaf] = [p.strip() for p in value.split(",") if p.strip()]
        else:
            parent[leaf] = value
        applied.add(".".join(segments))
    return applied


def _apply_deployment_defaults(config: MutableMapping[str, Any], overridden: set[str]) -> None:
    """Serverless deployments only have an ephemeral temp dir to write screenshots to."""
    if not os.environ.get("VERCEL"):
        return
    if "screenshots.cache_dir" in overridden:
        return
    screenshots = config.setdefault("screenshots", {})
    if not isinstance(screenshots, dict):
        raise TypeError("Configuration key path does not point to a mapping: screenshots")
    screenshots["cache_dir"] = str(Path(tempfile.gettempdir()) / EPHEMERAL_CACHE_DIRNAME)


class YamlConfigLoader:
    async def load(self, request: ConfigLoadRequest = ConfigLoadRequest()) -> AppConfig:
        yaml_path = Path(request.yaml_path)
        config = _read_yaml_config(yaml_path)

        if request.dotenv_path is not None:
            _load_dotenv_if_present(Path(request.dotenv_path))

        overridden = _apply_env_overrides(config, request.env_prefix)
        _apply_deployment_defaults(config, overridden)
        return AppConfig.model_validate(config)
