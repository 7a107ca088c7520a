"""
Configuration loading for AutoUpdatePlugins.

The configuration is a YAML mapping. Global keys hold the pipeline defaults and
`list` holds the ordered update entries. Values may be written either as native
YAML scalars or as strings (`"true"`, `"120"`); the accessors below accept both.
"""

import os
from typing import Any, Dict, List, Optional

import platformdirs
import yaml

from autoupdateplugins.constants import APP_NAME, CONFIG_FILE_NAME
from autoupdateplugins.log_utils import logger

DEFAULT_CONFIG_TEMPLATE = """\
# AutoUpdatePlugins configuration

# Seconds to wait after startup before the first update run
startupDelay: 64
# Seconds between update runs (values below 256 are raised to 512)
startupCycle: 61200
# Allow update cycles shorter than 256 seconds
disableUpdateCheckIntervalTooLow: false
# Allow a new run to start while another one is still running
disableLook: false

# Staging directory for downloads
tempPath: './plugins/AutoUpdatePlugins/temp/'
# Directory updated files are installed to
updatePath: './plugins/update/'
# Directory the currently installed files live in
filePath: './plugins/'

# Skip downloads whose resolved URL and remote size are unchanged
enablePreviousUpdate: true
# Skip installs whose content hash matches the installed file
ignoreDuplicates: true
# Verify archives before installing them
zipFileCheck: true
# Files matching this pattern are treated as archives
zipFileCheckList: '\\.(?:jar|zip)$'

# Log levels forwarded to the console: DEBUG, MARK, INFO, WARN, NET_WARN
logLevel:
  - DEBUG
  - MARK
  - INFO
  - WARN
  - NET_WARN

# Outbound proxy; type is DIRECT, HTTP or SOCKS
proxy:
  type: DIRECT
  host: '127.0.0.1'
  port: 7890

# Verify TLS certificates
sslVerify: true

# Extra headers attached to every request
setRequestProperty:
  - name: 'User-Agent'
    value: 'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko)'

list:
  - file: 'EssentialsX.jar'
    url: https://github.com/EssentialsX/Essentials
    get: 'EssentialsX-([0-9.]+)\\.jar'
  - file: 'Geyser-Spigot.jar'
    url: https://modrinth.com/plugin/geyser
    get: 'Geyser-Spigot\\.jar'
  - file: 'ViaVersion.jar'
    url: https://ci.viaversion.com/job/ViaVersion
"""


def get_default_config_path() -> str:
    """
    Return the platform-appropriate location of the configuration file.

    Returns:
        str: `<user config dir>/autoupdateplugins/config.yml`.
    """
    return os.path.join(platformdirs.user_config_dir(APP_NAME), CONFIG_FILE_NAME)


def ensure_default_config(config_path: Optional[str] = None) -> bool:
    """
    Write the bundled default configuration if no file exists yet.

    Parameters:
        config_path (Optional[str]): Target path; the platform default is used when omitted.

    Returns:
        bool: `True` if a new file was written, `False` if one already existed or writing failed.
    """
    path = config_path or get_default_config_path()
    if os.path.exists(path):
        return False
    try:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(DEFAULT_CONFIG_TEMPLATE)
    except OSError as e:
        logger.warning(f"Could not write default configuration to {path}: {e}")
        return False
    logger.info(f"Default configuration written to {path}")
    return True


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the YAML configuration.

    A missing, unreadable or non-mapping file yields an empty configuration so the caller
    can still run with defaults; the problem is logged as a warning.

    Parameters:
        config_path (Optional[str]): Path to the YAML file; the platform default is used when omitted.

    Returns:
        Dict[str, Any]: The parsed configuration mapping.
    """
    path = config_path or get_default_config_path()
    if not os.path.exists(path):
        logger.warning(f"Configuration file not found: {path}")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load configuration {path}: {e}")
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(
            f"Configuration {path} is not a mapping ({type(data).__name__}); ignoring it"
        )
        return {}
    return data


def get_config_str(config: Dict[str, Any], key: str, default: str) -> str:
    """Return `config[key]` as a string, or `default` when absent."""
    value = config.get(key)
    return default if value is None else str(value)


def parse_bool(value: Any, default: bool) -> bool:
    """
    Interpret a configuration value as a boolean.

    Native booleans are returned unchanged, strings are compared case-insensitively
    against "true", and any other value yields `default`.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return default


def get_config_bool(config: Dict[str, Any], key: str, default: bool) -> bool:
    """Return `config[key]` interpreted by parse_bool()."""
    return parse_bool(config.get(key), default)


def get_config_int(config: Dict[str, Any], key: str, default: int) -> int:
    """
    Return `config[key]` as an integer.

    Numbers are truncated and numeric strings parsed; anything else yields `default`.
    """
    value = config.get(key)
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def get_config_list(config: Dict[str, Any], key: str) -> List[Any]:
    """Return `config[key]` if it is a list, otherwise an empty list."""
    value = config.get(key)
    return value if isinstance(value, list) else []


def get_config_mapping(config: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Return `config[key]` if it is a mapping, otherwise an empty dict."""
    value = config.get(key)
    return value if isinstance(value, dict) else {}
