# pharmastock/schemas/webhook.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SECRET_MASK = "********"


class WebhookCreateIn(BaseModel):
    name: str = Field(..., description="端点名称")
    url: str = Field(..., description="http(s) 投递地址")
    secret: Optional[str] = Field(None, description="HMAC-SHA256 签名密钥（可选）")
    events: List[str] = Field(default_factory=list, description="订阅的事件；空 = 全部")


class WebhookUpdateIn(BaseModel):
    """只提交需要修改的字段（exclude_unset）；secret 传 null 表示去掉签名。"""

    name: Optional[str] = None
    url: Optional[str] = None
    secret: Optional[str] = None
    events: Optional[List[str]] = None
    is_active: Optional[bool] = None


class WebhookOut(BaseModel):
    id: int
    name: str
    url: str
    events: List[str]
    is_active: bool
    last_delivery_at: Optional[datetime] = None
    last_delivery_status: Optional[str] = None
    last_error: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    secret: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("secret")
    @classmethod
    def _mask_secret(cls, v: Optional[str]) -> Optional[str]:
        # 明文 secret 不出接口
        return SECRET_MASK if v else None


class WebhookListOut(BaseModel):
    webhooks: List[WebhookOut]
