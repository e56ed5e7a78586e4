from pydantic import BaseModel, Field


class FileBase64Response(BaseModel):
    file_name: str = Field(alias="fileName")
    size_bytes: int = Field(alias="sizeBytes")
    mime_type: str = Field(alias="mimeType")
    # Standard alphabet, padded; empty for an empty file.
    base64: str

    model_config = {
        "populate_by_name": True
    }


class ErrorResponse(BaseModel):
    error: str
