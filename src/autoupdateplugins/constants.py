"""
Constants and configuration values for AutoUpdatePlugins.

This module contains all hardcoded values, URLs, timeouts, and other constants
used throughout the application.
"""

# Provider API URLs
GITHUB_API_BASE = "https://api.github.com/repos"
SPIGET_RESOURCE_DOWNLOAD_URL = "https://api.spiget.org/v2/resources/{resource_id}/download"
MODRINTH_PROJECT_VERSIONS_URL = "https://api.modrinth.com/v2/project/{slug}/version"
GUIZHAN_DOWNLOAD_BASE = "https://builds.guizhanss.com/api/download"
CURSEFORGE_SERVERMODS_FILES_URL = (
    "https://api.curseforge.com/servermods/files?projectIds={project_id}"
)

# Network timeouts (in seconds): (connect, read)
DEFAULT_REQUEST_TIMEOUT = (10, 60)
DEFAULT_CHUNK_SIZE = 8192

# Default paths, relative to the working directory of the host server
DEFAULT_TEMP_PATH = "./plugins/AutoUpdatePlugins/temp/"
DEFAULT_UPDATE_PATH = "./plugins/update/"
DEFAULT_FILE_PATH = "./plugins/"

# Archive integrity check
DEFAULT_ZIP_FILE_CHECK_PATTERN = r"\.(?:jar|zip)$"

# Proxy defaults
DEFAULT_PROXY_TYPE = "DIRECT"
DEFAULT_PROXY_HOST = "127.0.0.1"
DEFAULT_PROXY_PORT = 7890

# Scheduling (in seconds)
DEFAULT_STARTUP_DELAY = 64
DEFAULT_STARTUP_CYCLE = 61200
MIN_STARTUP_CYCLE = 256
CLAMPED_STARTUP_CYCLE = 512

# File and directory names
APP_NAME = "autoupdateplugins"
CONFIG_FILE_NAME = "config.yml"
VERSION_CACHE_FILE = "previous_updates.json"
LOG_FILE_NAME = "autoupdateplugins.log"

# Version cache feature prefixes
FEATURE_CONTENT_LENGTH_PREFIX = "CL_"
FEATURE_LOCATION_PREFIX = "LH_"
FEATURE_UNKNOWN_PREFIX = "??_"
FEATURE_HASH_LENGTH = 16

CACHE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Run report levels, in the order they are listed in the default config
REPORT_LEVELS = ("DEBUG", "MARK", "INFO", "WARN", "NET_WARN")
MARK_PREFIX = "[AUP] "
UNKNOWN_TAG = "[???] "
BYTES_PER_MB = 1048576

# Logging
LOGGER_NAME = "autoupdateplugins"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5
LOG_LEVEL_ENV_VAR = "AUTOUPDATEPLUGINS_LOG_LEVEL"
