from pydantic import BaseModel, ConfigDict, Field, field_validator
from pathlib import Path

OFFICE_EXTENSION_FAMILIES = (".doc", ".xls")

def is_office_document(filename: str) -> bool:
    """True for .doc/.docx/.xls/.xlsx style names."""
    suffix = Path(filename or "").suffix.lower()
    return any(suffix.startswith(family) for family in OFFICE_EXTENSION_FAMILIES)

class LocalConversionRequest(BaseModel):
    input_path: Path

class RemoteConversionRequest(BaseModel):
    client_id: str = Field(..., alias="ClientId")
    tenant_id: str = Field(..., alias="TenantId")
    client_secret: str = Field(..., alias="ClientSecret")
    drive_id: str = Field(..., alias="driveId")
    file_id: str = Field(..., alias="fileId")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("client_id", "tenant_id", "client_secret", "drive_id", "file_id", mode="before")
    @classmethod
    def not_blank(cls, value):
        if value is None or not str(value).strip():
            raise ValueError("value must not be blank")
        return str(value).strip()
