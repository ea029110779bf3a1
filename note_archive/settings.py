"""
Loads the Dynaconf settings object for the note_archive component.
This module is the single source of truth for all configuration.
"""

from pathlib import Path
from dynaconf import Dynaconf

PACKAGE_ROOT = Path(__file__).parent

SETTINGS_FILES = ["config/settings.toml"]


def load_settings(**overrides) -> Dynaconf:
    """
    Builds the settings object from the packaged settings file.

    Values can be overridden with NOTE_ARCHIVE_-prefixed environment
    variables (e.g. NOTE_ARCHIVE_LOGGING__LEVEL=DEBUG) or keyword arguments.
    """
    return Dynaconf(
        root_path=PACKAGE_ROOT,
        settings_files=SETTINGS_FILES,
        envvar_prefix="NOTE_ARCHIVE",
        merge_enabled=True,
        environments=False,
        load_dotenv=False,
        **overrides,
    )
