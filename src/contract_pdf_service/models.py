from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .watermark import DEFAULT_WATERMARK_TEXT

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WatermarkConfig(CamelModel):
    text: str = DEFAULT_WATERMARK_TEXT
    opacity: float = Field(default=0.3, ge=0, le=1)
    position: Literal["center", "diagonal"] = "diagonal"
    date: Optional[str] = None


class DocumentMetadata(CamelModel):
    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None
    creator: Optional[str] = None
    producer: Optional[str] = None


class PermissionsConfig(CamelModel):
    print: Optional[Literal["full", "low", "none"]] = None
    modify: Optional[Literal["all", "annotate", "form", "assembly", "none"]] = None
    extract: Optional[Union[bool, Literal["y", "n"]]] = None


class ContractPdfRequest(CamelModel):
    pdf_base64: str = ""
    contract_id: str = ""
    contract_number: str = ""


class ProcessPdfRequest(ContractPdfRequest):
    watermark_config: Optional[WatermarkConfig] = None
    metadata: Optional[DocumentMetadata] = None


class EncryptPdfRequest(ContractPdfRequest):
    permissions: Optional[PermissionsConfig] = None


class WatermarkPdfRequest(CamelModel):
    pdf_base64: str = ""
    watermark_config: Optional[WatermarkConfig] = None


class EncryptedPdfData(CamelModel):
    encrypted_pdf_base64: str
    password: str
    file_size: int
    processing_time: int


class WatermarkedPdfData(CamelModel):
    watermarked_pdf_base64: str
    file_size: int
    processing_time: int


class SuccessResponse(BaseModel, Generic[T]):
    success: Literal[True] = True
    data: T


class ErrorResponse(BaseModel):
    success: Literal[False] = False
    error: str
    details: Optional[List[Any]] = None


class HealthStatus(BaseModel):
    status: str
    timestamp: datetime
    uptime: Optional[float] = None
    environment: Optional[str] = None
    checks: Optional[dict[str, bool]] = None
