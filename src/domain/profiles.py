from __future__ import annotations

import logging
import os
from pathlib import Path

import tomlkit

from domain.models import RasterRequestOptions
from shared.constants import PROFILES_DIR

logger = logging.getLogger(__name__)

PROFILES_DIR_ENV_VAR = 'ELEVATION_PROFILES_DIR'

# Never written to disk
_SECRET_FIELDS = {'api_key'}


def _user_profiles_dir() -> Path:
    """
    Determine profiles directory.

    1) ELEVATION_PROFILES_DIR if set;
    2) <project_root>/configs/profiles if it exists (run-from-repo setups);
    3) ~/.elevation_tiles/profiles otherwise.
    """
    env_dir = os.getenv(PROFILES_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir)

    project_root = Path(__file__).resolve().parent.parent.parent
    local_profiles = project_root / PROFILES_DIR
    if local_profiles.exists():
        return local_profiles

    return Path.home() / '.elevation_tiles' / 'profiles'


def ensure_profiles_dir() -> Path:
    profiles_dir = _user_profiles_dir()
    profiles_dir.mkdir(parents=True, exist_ok=True)
    return profiles_dir


def list_profiles() -> list[str]:
    """Profile names without extension."""
    folder = ensure_profiles_dir()
    return sorted(p.stem for p in folder.glob('*.toml') if p.is_file())


def profile_path(name_or_path: str | Path) -> Path:
    """Path of a profile given its name or a path to a .toml file."""
    p = Path(name_or_path)
    if p.suffix.lower() == '.toml':
        return p
    return ensure_profiles_dir() / f'{name_or_path}.toml'


def load_options(name_or_path: str | Path) -> RasterRequestOptions:
    """
    Load and validate request options from a TOML profile.

    Unknown keys are ignored; transport settings live in a [transport] table.
    """
    path = profile_path(name_or_path)
    if not path.exists():
        msg = f'Profile not found: {path}'
        raise FileNotFoundError(msg)
    data = tomlkit.parse(path.read_text(encoding='utf-8')).unwrap()
    options = RasterRequestOptions.model_validate(data)
    logger.info('Loaded profile %s (source=%s)', path, options.source.value)
    return options


def save_options(name_or_path: str | Path, options: RasterRequestOptions) -> Path:
    """Save options to TOML; the API key is never written."""
    path = profile_path(name_or_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = options.model_dump(mode='json', exclude=_SECRET_FIELDS, exclude_none=True)
    path.write_text(tomlkit.dumps(data), encoding='utf-8')
    return path


def delete_profile(name: str) -> None:
    path = profile_path(name)
    if path.exists():
        path.unlink()
