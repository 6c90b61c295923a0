"""Pydantic request/response schemas for the Pickups API."""

from __future__ import annotations

from datetime import datetime

from pydantic import AwareDatetime, BaseModel, Field

# --- Request Schemas ---


class CreateNotificationRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "ward_number": 5,
                    "scheduled_date": "2026-03-15",
                    "scheduled_time": "9:00 AM",
                    "message_text": "Waste pickup tomorrow morning. Please keep bins outside.",
                    "message_text_alt": "भोलि बिहान फोहोर संकलन हुनेछ।",
                }
            ]
        }
    }

    ward_number: int
    scheduled_date: str = Field(..., max_length=40)
    scheduled_time: str = Field(..., max_length=10)
    message_text: str
    message_text_alt: str | None = None


class RescheduleRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [{"scheduled_date": "2026-03-16", "scheduled_time": "10:30 AM", "reason": "Truck breakdown"}]
        }
    }

    scheduled_date: str = Field(..., max_length=40)
    scheduled_time: str = Field(..., max_length=10)
    message_text: str | None = None
    message_text_alt: str | None = None
    reason: str | None = Field(None, max_length=500)


class CancelRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class CompleteElapsedRequest(BaseModel):
    as_of: AwareDatetime | None = None


class SubmitResponseRequest(BaseModel):
    model_config = {"json_schema_extra": {"examples": [{"value": "yes"}]}}

    value: str = Field(..., max_length=10)


class RegisterCustomerRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "phone": "+9779800000001",
                    "name": "Sita Sharma",
                    "ward_number": 5,
                    "device_token": "fcm-token-abc",
                    "language_pref": "ne",
                }
            ]
        }
    }

    phone: str = Field(..., max_length=20)
    name: str = Field(..., max_length=150)
    ward_number: int
    device_token: str | None = Field(None, max_length=4096)
    language_pref: str = Field("en", max_length=5)


class ChangeWardRequest(BaseModel):
    ward_number: int


class RefreshDeviceTokenRequest(BaseModel):
    device_token: str = Field(..., max_length=4096)


# --- Response Schemas ---


class StatusResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: dict | None = None


class NotificationIdResponse(BaseModel):
    notification_id: str


class CancelResponse(BaseModel):
    notification_id: str
    cancelled: bool


class CompletionResponse(BaseModel):
    completed: list[str]


class ResponseStatsSchema(BaseModel):
    yes_count: int
    no_count: int
    total_customers: int
    response_rate: float


class NotificationResponse(BaseModel):
    id: str
    ward_id: str
    ward_number: int
    scheduled_at: datetime
    scheduled_time: str
    message_text: str
    message_text_alt: str | None = None
    status: str
    response_stats: ResponseStatsSchema
    created_by: str
    created_at: datetime
    sent_at: datetime | None = None
    cancelled_at: datetime | None = None
    failure_reason: str | None = None
    parent_notification_id: str | None = None
    rescheduled_to: str | None = None
    is_rescheduled: bool = False
    reschedule_reason: str | None = None
    accepts_responses: bool = False


class PickupResponseRecord(BaseModel):
    id: str
    notification_id: str
    customer_id: str
    value: str
    responded_at: datetime
    updated_at: datetime


class WarningSchema(BaseModel):
    operation: str
    topic: str
    reason: str


class MembershipResponse(BaseModel):
    customer_id: str
    ward_number: int
    warnings: list[WarningSchema] = []


class WardResponse(BaseModel):
    id: str
    number: int
    name: str
    name_alt: str | None = None
    customer_count: int
    is_active: bool


class WardStatsResponse(BaseModel):
    ward_number: int
    ward_id: str
    name: str
    name_alt: str | None = None
    customer_count: int
    is_active: bool
    recent_notifications: int
    average_response_rate: float
    last_pickup_date: str | None = None


class WardSummaryResponse(BaseModel):
    total_customers: int
    total_wards: int
    active_wards: int
    overall_response_rate: float
    wards: list[WardStatsResponse]
