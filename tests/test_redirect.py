import asyncio
import time
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from main import app
from toolbox_app.auth.roles import Role
from toolbox_app.dependencies import get_click_tracker
from toolbox_app.database.connection import SessionLocal
from toolbox_app.models import ShortLink, ClickEvent
from toolbox_app.queue.models import AFFILIATE_CLICKED
from toolbox_app.services.click_tracker import ClickTracker
from toolbox_app.services.link_registry import LinkRegistry
from toolbox_app.services.redirect_service import RedirectService

from conftest import auth_headers


class SlowClickTracker(ClickTracker):
    """Click tracker whose database write takes half a second"""

    def _record_sync(self, click):
        time.sleep(0.5)
        return super()._record_sync(click)


class TestRedirectEndpoint:
    """GET /go/{slug}"""

    def test_redirects_and_counts_click(self, client: TestClient, db_session, make_link, tracker):
        make_link(slug="chatgpt", destination_url="https://chat.openai.com?ref=tonystoolbox")

        response = client.get("/go/chatgpt", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "https://chat.openai.com?ref=tonystoolbox"

        client.portal.call(tracker.drain)
        assert LinkRegistry(db_session).get_click_count("chatgpt") == 1
        assert db_session.query(ClickEvent).count() == 1

    def test_records_referrer(self, client: TestClient, db_session, make_link, tracker):
        make_link(slug="copilot", destination_url="https://github.com/features/copilot?ref=tonystoolbox")

        client.get("/go/copilot", headers={"referer": "https://twitter.com"}, follow_redirects=False)
        client.portal.call(tracker.drain)

        click = db_session.query(ClickEvent).one()
        assert click.referrer == "https://twitter.com"

    def test_unknown_slug_is_404_without_mutation(self, client: TestClient, db_session, make_link, tracker):
        make_link(slug="chatgpt")

        response = client.get("/go/doesnotexist", follow_redirects=False)
        assert response.status_code == 404
        assert "location" not in response.headers
        assert response.json() == {"detail": "Short link not found"}

        client.portal.call(tracker.drain)
        assert LinkRegistry(db_session).get_click_count("chatgpt") == 0
        assert db_session.query(ClickEvent).count() == 0

    def test_invalid_slug_is_400(self, client: TestClient):
        response = client.get("/go/bad.slug", follow_redirects=False)
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid short link"}

    def test_trailing_newline_slug_is_400(self, client: TestClient, db_session, make_link, tracker):
        make_link(slug="chatgpt")

        response = client.get("/go/chatgpt%0A", follow_redirects=False)
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid short link"}

        client.portal.call(tracker.drain)
        assert LinkRegistry(db_session).get_click_count("chatgpt") == 0

    def test_overlong_slug_is_400(self, client: TestClient):
        response = client.get("/go/" + "a" * 65, follow_redirects=False)
        assert response.status_code == 400

    def test_slug_lookup_is_case_sensitive(self, client: TestClient, make_link):
        make_link(slug="ChatGPT")

        assert client.get("/go/ChatGPT", follow_redirects=False).status_code == 302
        assert client.get("/go/chatgpt", follow_redirects=False).status_code == 404

    def test_repeated_redirects_are_identical(self, client: TestClient, db_session, make_link, tracker):
        make_link(slug="chatgpt")

        locations = {client.get("/go/chatgpt", follow_redirects=False).headers["location"] for _ in range(3)}
        assert locations == {"https://chat.openai.com?ref=tonystoolbox"}

        client.portal.call(tracker.drain)
        assert LinkRegistry(db_session).get_click_count("chatgpt") == 3

    def test_publishes_affiliate_clicked(self, client: TestClient, make_link, tracker, queue):
        make_link(slug="chatgpt")

        client.get("/go/chatgpt", headers=auth_headers("subscriber", sub="user-42"), follow_redirects=False)
        client.portal.call(tracker.drain)

        events = asyncio.run(queue.consume("analytics_events", batch_size=10))
        assert len(events) == 1
        assert events[0].event == AFFILIATE_CLICKED
        assert events[0].distinct_id == "user-42"
        assert events[0].properties["slug"] == "chatgpt"

    def test_storage_failure_is_generic_500(self, client: TestClient, db_session, make_link):
        make_link(slug="chatgpt")

        failure = OperationalError("SELECT", {}, Exception("disk I/O error at /var/lib/db"))
        with patch.object(db_session, "execute", side_effect=failure):
            response = client.get("/go/chatgpt", follow_redirects=False)

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}
        assert "disk" not in response.text


class TestGatedRedirect:
    """Links owned by gated projects go through the role gate"""

    def test_admin_only_project(self, client: TestClient, db_session, make_project, make_link, tracker):
        project = make_project(slug="internal-dashboard", is_gated=True, required_role=Role.ADMIN)
        make_link(slug="dashboard", destination_url="https://demo.tonystoolbox.com/analytics", project=project)

        guest = client.get("/go/dashboard", follow_redirects=False)
        assert guest.status_code == 403
        assert "location" not in guest.headers

        admin = client.get("/go/dashboard", headers=auth_headers("admin"), follow_redirects=False)
        assert admin.status_code == 302
        assert admin.headers["location"] == "https://demo.tonystoolbox.com/analytics"

        # Only the admitted request is counted
        client.portal.call(tracker.drain)
        assert LinkRegistry(db_session).get_click_count("dashboard") == 1

    def test_subscriber_project(self, client: TestClient, make_project, make_link):
        project = make_project(slug="premium-gpt", is_gated=True, required_role=Role.SUBSCRIBER)
        make_link(slug="premium", project=project)

        assert client.get("/go/premium", follow_redirects=False).status_code == 403
        assert client.get("/go/premium", headers=auth_headers("subscriber"), follow_redirects=False).status_code == 302
        assert client.get("/go/premium", headers=auth_headers("admin"), follow_redirects=False).status_code == 302

    def test_role_from_session_cookie(self, client: TestClient, make_project, make_link):
        from conftest import make_token

        project = make_project(slug="premium-gpt", is_gated=True)
        make_link(slug="premium", project=project)

        cookie = {"Cookie": f"sb-access-token={make_token('subscriber')}"}
        assert client.get("/go/premium", headers=cookie, follow_redirects=False).status_code == 302

    def test_forged_token_is_guest(self, client: TestClient, make_project, make_link):
        from conftest import make_token

        project = make_project(slug="premium-gpt", is_gated=True)
        make_link(slug="premium", project=project)

        forged = make_token("admin", secret="not-the-secret")
        response = client.get("/go/premium", headers={"Authorization": f"Bearer {forged}"}, follow_redirects=False)
        assert response.status_code == 403

    def test_ungated_project_open_to_guests(self, client: TestClient, make_project, make_link):
        project = make_project(slug="open-project", is_gated=False)
        make_link(slug="open", project=project)

        assert client.get("/go/open", follow_redirects=False).status_code == 302


class TestRedirectLatency:
    """Click recording must not hold up the redirect"""

    def test_service_returns_before_recording_finishes(self, db_session, make_link):
        make_link(slug="chatgpt")

        async def scenario():
            tracker = SlowClickTracker(session_factory=SessionLocal)
            service = RedirectService(db_session, tracker=tracker)

            start = time.perf_counter()
            destination = await service.resolve_destination("chatgpt")
            elapsed = time.perf_counter() - start

            pending = tracker.pending_count
            await tracker.drain()
            return destination, elapsed, pending

        destination, elapsed, pending = asyncio.run(scenario())

        assert destination == "https://chat.openai.com?ref=tonystoolbox"
        assert elapsed < 0.2
        assert pending == 1
        assert LinkRegistry(db_session).get_click_count("chatgpt") == 1

    def test_http_redirect_not_delayed(self, client: TestClient, db_session, make_link):
        make_link(slug="chatgpt")
        slow_tracker = SlowClickTracker(session_factory=SessionLocal)
        app.dependency_overrides[get_click_tracker] = lambda: slow_tracker

        start = time.perf_counter()
        response = client.get("/go/chatgpt", follow_redirects=False)
        elapsed = time.perf_counter() - start

        assert response.status_code == 302
        assert elapsed < 0.4

        client.portal.call(slow_tracker.drain)
        assert LinkRegistry(db_session).get_click_count("chatgpt") == 1

    def test_recording_failure_does_not_affect_redirect(self, client: TestClient, db_session, make_link, tracker):
        make_link(slug="chatgpt")

        with patch.object(LinkRegistry, "record_click", side_effect=RuntimeError("boom")):
            response = client.get("/go/chatgpt", follow_redirects=False)
            client.portal.call(tracker.drain)

        assert response.status_code == 302
        assert db_session.query(ShortLink).filter_by(slug="chatgpt").one().click_count == 0
