"""
Request/response schemas for the Pabbly Connect workflow API.
"""
from datetime import datetime
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field


class ActionSpec(BaseModel):
    """One step of a workflow: a type tag plus its parameters."""

    type: str = Field(min_length=1)
    parameters: dict[str, Any] = Field(default_factory=dict)


class WorkflowCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    trigger_type: str = Field(min_length=1, max_length=50)
    description: str = ""
    template: str = "custom"
    trigger_config: dict[str, Any] = Field(default_factory=dict)
    actions: list[ActionSpec] = Field(default_factory=list)
    status: Literal["active", "inactive"] = "active"


class WorkflowCreatedResponse(BaseModel):
    workflow_id: str
    trigger_id: str
    webhook_url: str
    webhook_slug: str
    authentication: str
    # Only returned once, at creation time
    webhook_secret: Optional[str] = None


class WorkflowDetail(BaseModel):
    id: str
    name: str
    description: str = ""
    template: str
    trigger_type: str
    trigger_config: dict[str, Any]
    actions: list[ActionSpec]
    status: str
    webhook_url: str
    created_at: Optional[datetime] = None


class WorkflowSummary(WorkflowDetail):
    execution_count: int = 0
    last_execution: Optional[datetime] = None
    avg_execution_time: Optional[float] = None


class ExecutionDetail(BaseModel):
    id: str
    workflow_id: str
    workflow_name: Optional[str] = None
    trigger_id: Optional[str] = None
    status: str
    input_data: Optional[Any] = None
    output_data: Optional[Any] = None
    step_trace: Optional[list[dict[str, Any]]] = None
    error_message: Optional[str] = None
    execution_time_ms: Optional[int] = None
    executed_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class WebhookLogSummary(BaseModel):
    id: str
    trigger_id: Optional[str] = None
    trigger_name: Optional[str] = None
    workflow_name: Optional[str] = None
    webhook_slug: str
    response_status: int
    response_time_ms: int
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    received_at: Optional[datetime] = None
