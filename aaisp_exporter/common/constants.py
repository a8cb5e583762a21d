"""Application constants."""

USER_AGENT = "aaisp-exporter/0.3 (+prometheus)"
DEFAULT_CHAOS_ENDPOINT = "https://chaos2.aa.net.uk"
REQUEST_TIMEOUT_SECONDS = 10.0

UPSTREAM_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
UPSTREAM_TIMEZONE = "Europe/London"

ENV_CONTROL_LOGIN = "CHAOS_CONTROL_LOGIN"
ENV_CONTROL_PASSWORD = "CHAOS_CONTROL_PASSWORD"

DEFAULT_LISTEN = ":8080"
DEFAULT_LOG_LEVEL = "info"
LOG_OUTPUTS = ("json", "console")

EXIT_SUCCESS = 0
EXIT_FATAL = 1

LOGGER_NAME = "aaisp_exporter"
JSON_LOG_FIELDS = (
    "timestamp",
    "level",
    "event",
    "status",
    "error_code",
    "line_count",
    "duration_ms",
    "proto",
    "method",
    "path",
    "remote_addr",
    "user_agent",
    "message",
)
