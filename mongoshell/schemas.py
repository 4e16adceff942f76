from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ShellRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    connection_string: Optional[str] = Field(None, alias="connectionString")
    database_name: Optional[str] = Field(None, alias="databaseName")
    collection_name: Optional[str] = Field(None, alias="collectionName")
    command: Optional[str] = None
