from __future__ import annotations

import httpx
from structlog.testing import capture_logs

from expa_notifier.config import RoutingKey
from expa_notifier.engine import Notifier, NotifyOutcome
from expa_notifier.engine.notifier import TEST_MESSAGE


def test_notify_posts_text_to_bound_channel(notifier, webhooks, make_signup) -> None:
    outcome = notifier.notify(RoutingKey.SIGNUP, make_signup("A"))

    assert outcome is NotifyOutcome.SENT
    assert webhooks.channels() == ["signup"]
    text = webhooks.posts[0]["json"]["text"]
    assert set(webhooks.posts[0]["json"]) == {"text"}
    assert text.startswith("New EXPA Signup\n")
    assert "Name: Person A" in text
    assert "Phone: +94770000000" in text


def test_signup_time_is_rendered_in_target_zone(notifier, make_signup) -> None:
    # 04:30 UTC is 10:00 in Colombo (UTC+05:30)
    text = notifier.format_message(make_signup(created_at="2024-05-20T04:30:00Z"))
    assert "Signed up: 2024-05-20 10:00 (Asia/Colombo)" in text


def test_signup_message_without_contact_details(notifier, make_signup) -> None:
    text = notifier.format_message(make_signup(contact_detail=None, email=None))
    assert "Phone: N/A" in text
    assert "Email: N/A" in text


def test_application_message_includes_function_and_host(notifier, make_application) -> None:
    text = notifier.format_message(make_application(function="GTe", host="JAFFNA"))
    lines = text.splitlines()
    assert lines[0] == "New EXPA GTe Application"
    assert "Applicant: Applicant APP-1" in lines
    assert "Opportunity: Teach English" in lines
    assert "Host LC: JAFFNA" in lines
    assert "Applied: 2024-05-20 10:00 (Asia/Colombo)" in lines


def test_missing_binding_fails_without_posting(webhooks, make_signup) -> None:
    notifier = Notifier({}, client=webhooks.client())
    with capture_logs() as logs:
        outcome = notifier.notify(RoutingKey.SIGNUP, make_signup())
    assert outcome is NotifyOutcome.FAILED
    assert webhooks.posts == []
    assert [entry["event"] for entry in logs] == ["notify_failed"]


def test_transport_error_is_reported_not_raised(notifier, webhooks, make_application) -> None:
    webhooks.fail = True
    assert notifier.notify(RoutingKey.MAIN, make_application()) is NotifyOutcome.FAILED


def test_non_2xx_status_still_counts_as_sent(sample_config, make_signup) -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    notifier = Notifier(sample_config.webhooks, client=client)
    with capture_logs() as logs:
        assert notifier.notify(RoutingKey.SIGNUP, make_signup()) is NotifyOutcome.SENT
    assert logs[-1]["status"] == 500


def test_disabled_notifier_skips(sample_config, webhooks, make_signup) -> None:
    notifier = Notifier(sample_config.webhooks, enabled=False, client=webhooks.client())
    assert notifier.notify(RoutingKey.SIGNUP, make_signup()) is NotifyOutcome.SKIPPED
    assert webhooks.posts == []


def test_send_test_message_to_selected_channels(notifier, webhooks) -> None:
    results = notifier.send_test_message([RoutingKey.SIGNUP, RoutingKey.MAIN])
    assert results == {RoutingKey.SIGNUP: NotifyOutcome.SENT, RoutingKey.MAIN: NotifyOutcome.SENT}
    assert webhooks.channels() == ["signup", "main"]
    assert all(post["json"] == {"text": TEST_MESSAGE} for post in webhooks.posts)
