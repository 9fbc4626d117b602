"""Settings for elastiq."""

from typing import List, Optional, Union

from pydantic_settings import BaseSettings, SettingsConfigDict


class ElastiqSettings(BaseSettings):
    """elastiq configuration settings."""

    # Connection
    ES_HOSTS: List[str] = ["http://localhost:9200"]
    ES_CLOUD_ID: Optional[str] = None
    ES_API_KEY: Optional[str] = None
    ES_USERNAME: Optional[str] = None
    ES_PASSWORD: Optional[str] = None
    ES_VERIFY_CERTS: bool = True
    ES_CA_CERTS: Optional[str] = None
    ES_INDEX_PREFIX: str = ""

    # Writes
    ES_REFRESH: Union[bool, str] = "wait_for"  # choices: True, False, "wait_for"
    ES_BULK_CHUNK_SIZE: int = 1000

    # Query compilation
    ES_BYPASS_MAP_VALIDATION: bool = False
    ES_ALLOW_ID_SORT: bool = False
    ES_INNER_HITS_SIZE: int = 100
    ES_DISTINCT_SIZE: int = 10000
    ES_DEFAULT_PER_PAGE: int = 15

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = ElastiqSettings()
