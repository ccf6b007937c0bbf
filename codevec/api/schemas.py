"""
Request and response models for the HTTP API.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, List


class CreateProjectRequest(BaseModel):
    project_name: str
    project_path: str = ""


class GenerateEmbeddingsRequest(BaseModel):
    project_name: str
    project_path: str

    @field_validator('project_path')
    @classmethod
    def project_path_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('project_path cannot be empty')
        return v


class GenerateEmbeddingsResponse(BaseModel):
    project_name: str
    project_path: str
    message: str


class ProjectInfoResponse(BaseModel):
    name: str
    total_code_blocks: int


class MessageResponse(BaseModel):
    message: str


class SearchResponse(BaseModel):
    nearest: str
    k_nearest: List[str]


class CodeBlockResponse(BaseModel):
    node_key: str
    block_type: str
    content: str
    class_name: Optional[str] = None
    function_name: Optional[str] = None
    outgoing_calls: List[str]


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
