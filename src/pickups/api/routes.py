"""FastAPI endpoints for the Pickups domain.

Caller identity arrives already authenticated in the ``X-Actor-Id`` and
``X-Actor-Role`` headers; the domain only checks the role. Notification,
response and membership endpoints call their services outside any unit of
work; ward activation is processed as a command.
"""

from fastapi import APIRouter, Depends, Header
from protean.utils.globals import current_domain

from pickups.access import Caller, require_admin
from pickups.api.schemas import (
    CancelRequest,
    CancelResponse,
    ChangeWardRequest,
    CompleteElapsedRequest,
    CompletionResponse,
    CreateNotificationRequest,
    MembershipResponse,
    NotificationIdResponse,
    NotificationResponse,
    PickupResponseRecord,
    RefreshDeviceTokenRequest,
    RegisterCustomerRequest,
    RescheduleRequest,
    ResponseStatsSchema,
    StatusResponse,
    SubmitResponseRequest,
    WardResponse,
    WardStatsResponse,
    WardSummaryResponse,
    WarningSchema,
)
from pickups.config import utc_now
from pickups.customer.membership import TopicMembership
from pickups.fanout import get_fanout
from pickups.notification.lifecycle import NotificationLifecycle
from pickups.response.aggregator import ResponseAggregator
from pickups.ward.registry import ActivateWard, DeactivateWard, WardRegistry
from pickups.ward.statistics import WardStatistics

notification_router = APIRouter(prefix="/notifications", tags=["notifications"])
customer_router = APIRouter(prefix="/customers", tags=["customers"])
ward_router = APIRouter(prefix="/wards", tags=["wards"])


def current_caller(
    x_actor_id: str | None = Header(None),
    x_actor_role: str | None = Header(None),
) -> Caller:
    return Caller.from_values(x_actor_id, x_actor_role)


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------
def _notification_response(notification) -> NotificationResponse:
    stats = notification.response_stats
    return NotificationResponse(
        id=str(notification.id),
        ward_id=str(notification.ward_id),
        ward_number=notification.ward_number,
        scheduled_at=notification.scheduled_at,
        scheduled_time=notification.scheduled_time,
        message_text=notification.message.default,
        message_text_alt=notification.message.alt,
        status=notification.status,
        response_stats=ResponseStatsSchema(
            yes_count=stats.yes_count or 0,
            no_count=stats.no_count or 0,
            total_customers=stats.total_customers or 0,
            response_rate=stats.response_rate,
        ),
        created_by=notification.created_by,
        created_at=notification.created_at,
        sent_at=notification.sent_at,
        cancelled_at=notification.cancelled_at,
        failure_reason=notification.failure_reason,
        parent_notification_id=str(notification.parent_notification_id)
        if notification.parent_notification_id
        else None,
        rescheduled_to=str(notification.rescheduled_to) if notification.rescheduled_to else None,
        is_rescheduled=bool(notification.is_rescheduled),
        reschedule_reason=notification.reschedule_reason,
        accepts_responses=notification.is_open_for_responses(utc_now()),
    )


def _response_record(response) -> PickupResponseRecord:
    return PickupResponseRecord(
        id=str(response.id),
        notification_id=str(response.notification_id),
        customer_id=str(response.customer_id),
        value=response.value,
        responded_at=response.responded_at,
        updated_at=response.updated_at,
    )


def _membership_response(result) -> MembershipResponse:
    return MembershipResponse(
        customer_id=result.customer_id,
        ward_number=result.ward_number,
        warnings=[WarningSchema(operation=w.operation, topic=w.topic, reason=w.reason) for w in result.warnings],
    )


def _ward_response(ward) -> WardResponse:
    return WardResponse(
        id=str(ward.id),
        number=ward.number,
        name=ward.name.default,
        name_alt=ward.name.alt,
        customer_count=ward.customer_count or 0,
        is_active=bool(ward.is_active),
    )


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
@notification_router.post("", status_code=201, response_model=NotificationIdResponse)
async def create_notification(
    body: CreateNotificationRequest, caller: Caller = Depends(current_caller)
) -> NotificationIdResponse:
    notification_id = NotificationLifecycle(get_fanout()).create(
        caller,
        ward_number=body.ward_number,
        scheduled_date=body.scheduled_date,
        scheduled_time=body.scheduled_time,
        message_text=body.message_text,
        message_text_alt=body.message_text_alt,
    )
    return NotificationIdResponse(notification_id=notification_id)


@notification_router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    ward_number: int | None = None,
    status: str | None = None,
    caller: Caller = Depends(current_caller),
) -> list[NotificationResponse]:
    lifecycle = NotificationLifecycle(get_fanout())
    return [_notification_response(n) for n in lifecycle.list_notifications(ward_number, status)]


@notification_router.post("/complete-elapsed", response_model=CompletionResponse)
async def complete_elapsed(
    body: CompleteElapsedRequest, caller: Caller = Depends(current_caller)
) -> CompletionResponse:
    require_admin(caller)
    return CompletionResponse(completed=NotificationLifecycle(get_fanout()).complete_elapsed(body.as_of))


@notification_router.get("/{notification_id}", response_model=NotificationResponse)
async def get_notification(notification_id: str, caller: Caller = Depends(current_caller)) -> NotificationResponse:
    return _notification_response(NotificationLifecycle(get_fanout()).get(notification_id))


@notification_router.get("/{notification_id}/chain", response_model=list[NotificationResponse])
async def get_reschedule_chain(
    notification_id: str, caller: Caller = Depends(current_caller)
) -> list[NotificationResponse]:
    require_admin(caller)
    chain = NotificationLifecycle(get_fanout()).reschedule_chain(notification_id)
    return [_notification_response(n) for n in chain]


@notification_router.post("/{notification_id}/reschedule", status_code=201, response_model=NotificationIdResponse)
async def reschedule_notification(
    notification_id: str, body: RescheduleRequest, caller: Caller = Depends(current_caller)
) -> NotificationIdResponse:
    replacement_id = NotificationLifecycle(get_fanout()).reschedule(
        caller,
        original_id=notification_id,
        scheduled_date=body.scheduled_date,
        scheduled_time=body.scheduled_time,
        message_text=body.message_text,
        message_text_alt=body.message_text_alt,
        reason=body.reason,
    )
    return NotificationIdResponse(notification_id=replacement_id)


@notification_router.post("/{notification_id}/cancel", response_model=CancelResponse)
async def cancel_notification(
    notification_id: str, body: CancelRequest, caller: Caller = Depends(current_caller)
) -> CancelResponse:
    changed = NotificationLifecycle(get_fanout()).cancel(caller, notification_id, reason=body.reason)
    return CancelResponse(notification_id=notification_id, cancelled=changed)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
@notification_router.put("/{notification_id}/responses/{customer_id}", response_model=PickupResponseRecord)
async def submit_response(
    notification_id: str,
    customer_id: str,
    body: SubmitResponseRequest,
    caller: Caller = Depends(current_caller),
) -> PickupResponseRecord:
    response = ResponseAggregator().submit(caller, notification_id, customer_id, body.value)
    return _response_record(response)


@notification_router.get("/{notification_id}/responses", response_model=list[PickupResponseRecord])
async def list_responses(
    notification_id: str, caller: Caller = Depends(current_caller)
) -> list[PickupResponseRecord]:
    require_admin(caller)
    return [_response_record(r) for r in ResponseAggregator().responses_for(notification_id)]


@notification_router.delete("/{notification_id}/responses/{customer_id}", response_model=StatusResponse)
async def delete_response(
    notification_id: str, customer_id: str, caller: Caller = Depends(current_caller)
) -> StatusResponse:
    ResponseAggregator().delete_response(caller, notification_id, customer_id)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------
@customer_router.put("/{customer_id}", status_code=201, response_model=MembershipResponse)
async def register_customer(
    customer_id: str, body: RegisterCustomerRequest, caller: Caller = Depends(current_caller)
) -> MembershipResponse:
    result = TopicMembership(get_fanout()).register(
        caller,
        customer_id=customer_id,
        phone=body.phone,
        name=body.name,
        ward_number=body.ward_number,
        device_token=body.device_token,
        language_pref=body.language_pref,
    )
    return _membership_response(result)


@customer_router.put("/{customer_id}/ward", response_model=MembershipResponse)
async def change_ward(
    customer_id: str, body: ChangeWardRequest, caller: Caller = Depends(current_caller)
) -> MembershipResponse:
    result = TopicMembership(get_fanout()).change_ward(caller, customer_id, body.ward_number)
    return _membership_response(result)


@customer_router.put("/{customer_id}/device-token", response_model=MembershipResponse)
async def refresh_device_token(
    customer_id: str, body: RefreshDeviceTokenRequest, caller: Caller = Depends(current_caller)
) -> MembershipResponse:
    result = TopicMembership(get_fanout()).refresh_device_token(caller, customer_id, body.device_token)
    return _membership_response(result)


# ---------------------------------------------------------------------------
# Wards
# ---------------------------------------------------------------------------
@ward_router.get("", response_model=list[WardResponse])
async def list_wards(caller: Caller = Depends(current_caller)) -> list[WardResponse]:
    return [_ward_response(w) for w in WardRegistry().list_wards()]


@ward_router.get("/stats", response_model=WardSummaryResponse)
async def ward_summary(caller: Caller = Depends(current_caller)) -> WardSummaryResponse:
    summary = WardStatistics().summary(caller)
    return WardSummaryResponse(
        total_customers=summary.total_customers,
        total_wards=summary.total_wards,
        active_wards=summary.active_wards,
        overall_response_rate=summary.overall_response_rate,
        wards=[WardStatsResponse(**vars(s)) for s in summary.wards],
    )


@ward_router.get("/{ward_number}/stats", response_model=WardStatsResponse)
async def ward_stats(ward_number: int, caller: Caller = Depends(current_caller)) -> WardStatsResponse:
    return WardStatsResponse(**vars(WardStatistics().for_ward(caller, ward_number)))


@ward_router.put("/{ward_number}/activate", response_model=StatusResponse)
async def activate_ward(ward_number: int, caller: Caller = Depends(current_caller)) -> StatusResponse:
    command = ActivateWard(actor_id=caller.subject_id, actor_role=caller.role.value, ward_number=ward_number)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@ward_router.put("/{ward_number}/deactivate", response_model=StatusResponse)
async def deactivate_ward(ward_number: int, caller: Caller = Depends(current_caller)) -> StatusResponse:
    command = DeactivateWard(actor_id=caller.subject_id, actor_role=caller.role.value, ward_number=ward_number)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()
