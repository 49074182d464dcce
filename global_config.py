import logging
import os
import sys

import boto3
from pydantic_settings import BaseSettings, SettingsConfigDict


class GlobalConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")
    opensearch_endpoint: str = ""
    opensearch_port: int = 443
    index_name: str = "chat-messages"
    aws_region: str = "us-east-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_session_token: str | None = None
    use_aws_auth: bool = True
    use_ssl: bool = True
    verify_certs: bool = True
    request_timeout: float = 10.0
    refresh_on_write: bool = True
    retry_on_conflict: int = 3
    number_of_shards: int = 1
    number_of_replicas: int = 0
    log_level: str = "INFO"
    log_format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str, fmt: str) -> None:
    """Configure the root logger once at startup.

    Existing handlers are replaced, so calling this again on a warm process
    does not duplicate output.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(fmt))
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("opensearch").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)


global_config = GlobalConfig()

os.environ.setdefault("AWS_REGION", global_config.aws_region)

if global_config.aws_access_key_id and global_config.aws_secret_access_key:
    boto3.setup_default_session(
        aws_access_key_id=global_config.aws_access_key_id,
        aws_secret_access_key=global_config.aws_secret_access_key,
        aws_session_token=global_config.aws_session_token,
        region_name=global_config.aws_region,
    )
