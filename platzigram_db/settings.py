from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    host: str = Field("localhost")
    port: int = Field(28015)
    database_name: str = Field("platzigram")
    setup_schema: bool = Field(False)

    # Overrides host/port when set, e.g. a DynamoDB Local container
    endpoint_url: Optional[str] = Field(None)

    aws_region: str = Field("us-east-1")
    aws_access_key_id: str = Field("test")
    aws_secret_access_key: str = Field("test")

    # Seconds between polls while secondary indexes are still building
    index_poll_interval: float = Field(0.5)

    model_config = SettingsConfigDict(
        env_prefix="PLATZIGRAM_DB_",
        env_file=".env",
        extra="allow",  # tolerate unknown vars if needed
    )

    @property
    def resolved_endpoint_url(self) -> str:
        return self.endpoint_url or f"http://{self.host}:{self.port}"

settings = Settings()
