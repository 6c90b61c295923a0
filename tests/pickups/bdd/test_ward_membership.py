"""BDD tests for ward membership."""

from pickups.customer.membership import TopicMembership
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/ward_membership.feature")


@when(parsers.cfparse('resident "{customer_id}" moves to ward {ward_number:d}'))
def move_ward(context, fanout, resident, customer_id, ward_number):
    context["customer_id"] = customer_id
    context["result"] = TopicMembership(fanout).change_ward(resident(customer_id), customer_id, ward_number)


@when("the ward change is delivered again")
def replay_ward_change(context, fanout):
    membership = TopicMembership(fanout)
    customer = membership.get(context["customer_id"])
    membership.on_ward_changed(
        customer.id, "ward_5", customer.ward_id, customer.device_token, seq=customer.ward_change_seq
    )


@then(parsers.cfparse('device "{token}" listens to ward {ward_number:d} only'))
def device_listens(fanout, token, ward_number):
    listening = [topic for topic, tokens in fanout.topics.items() if token in tokens]
    assert listening == [f"ward_{ward_number}"]


@then(parsers.cfparse('the move reports a subscribe warning for "{topic}"'))
def subscribe_warning(context, topic):
    assert [(w.operation, w.topic) for w in context["result"].warnings] == [("subscribe", topic)]
