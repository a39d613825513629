import io

import pytest

from app.ielts_copilot.app import create_app
from app.ielts_copilot.services.errors import CompletionFailure, ConfigurationError

FULL_RESPONSE = """### IELTS Writing Analysis

**Predicted Band Score:** [Band 7.0]

#### 🔍 Score Breakdown:
- Task Achievement: 7/9

---

### 🧠 Example Responses by Band Level

#### Band 6 Example:
Six.

#### Band 7 Example:
Seven.

#### Band 8 Example:
Eight.

#### Band 9 Example:
Nine."""


def _form(**overrides):
    data = {
        "task_type": "Task 2",
        "topic": "Technology in education",
        "essay_mode": "text",
        "essay_text": "Technology has transformed classrooms.",
    }
    data.update(overrides)
    return data


def test_app_refuses_to_start_without_api_key():
    with pytest.raises(ConfigurationError):
        create_app('testing', GEMINI_API_KEY=None)


def test_index_shows_empty_state(client):
    response = client.get("/")
    assert response.status_code == 200
    assert b"Your Analysis Will Appear Here" in response.data


def test_api_analyze_returns_text_and_sections(client, fake_client):
    fake_client.queue(FULL_RESPONSE)

    response = client.post("/api/analyze", data=_form())

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["success"] is True
    assert payload["result"] == FULL_RESPONSE
    assert payload["contract_satisfied"] is True
    assert len(payload["sections"]) == 2
    assert payload["sections"][0][0] == {"level": 3, "text": "IELTS Writing Analysis", "kind": "heading"}
    text_part = fake_client.calls[0]["parts"][-1]["text"]
    assert "User's Essay Text:\n---\nTechnology has transformed classrooms.\n---" in text_part


def test_api_flags_response_that_breaks_the_contract(client, fake_client):
    fake_client.queue("Here are some thoughts without headings.")

    payload = client.post("/api/analyze", data=_form()).get_json()

    assert payload["success"] is True
    assert payload["contract_satisfied"] is False


def test_empty_topic_is_rejected_without_remote_call(client, fake_client):
    response = client.post("/api/analyze", data=_form(topic="   "))

    assert response.status_code == 400
    assert response.get_json()["error"] == "Please provide a topic for your writing task."
    assert fake_client.calls == []


def test_oversized_image_is_rejected_at_capture(client, fake_client):
    data = _form(essay_mode="image", essay_image=(io.BytesIO(b"x" * 65), "essay.png"))

    response = client.post("/api/analyze", data=data, content_type="multipart/form-data")

    assert response.status_code == 400
    assert response.get_json()["error"] == "Image size should not exceed 4MB."
    assert fake_client.calls == []


def test_disallowed_extension_is_rejected(client):
    data = _form(essay_mode="image", essay_image=(io.BytesIO(b"abc"), "essay.exe"))
    response = client.post("/api/analyze", data=data, content_type="multipart/form-data")
    assert response.status_code == 400


def test_image_mode_sends_chart_then_essay_image(client, fake_client):
    data = _form(
        task_type="Task 1",
        topic="The chart shows population growth",
        essay_mode="image",
        essay_text="should not be sent",
        question_image=(io.BytesIO(b"chart"), "chart.png"),
        essay_image=(io.BytesIO(b"essay"), "essay.jpg"),
    )

    response = client.post("/api/analyze", data=data, content_type="multipart/form-data")

    assert response.status_code == 200
    parts = fake_client.calls[0]["parts"]
    assert [p["inlineData"]["mimeType"] for p in parts[:2]] == ["image/png", "image/jpeg"]
    assert "[Image 2] attached is the User's Handwritten Essay" in parts[2]["text"]
    assert "should not be sent" not in parts[2]["text"]


def test_task_two_ignores_chart_upload(client, fake_client):
    data = _form(essay_text="", question_image=(io.BytesIO(b"chart"), "chart.png"))

    client.post("/api/analyze", data=data, content_type="multipart/form-data")

    parts = fake_client.calls[0]["parts"]
    assert len(parts) == 1
    assert "[NO ESSAY PROVIDED]" in parts[0]["text"]


def test_completion_failure_then_retry_is_allowed(client, fake_client):
    fake_client.queue(CompletionFailure())
    fake_client.queue(FULL_RESPONSE)

    failed = client.post("/api/analyze", data=_form())
    assert failed.status_code == 502
    assert failed.get_json() == {
        "success": False,
        "error": "Failed to get a response from the AI. Please check your API key and network connection.",
    }

    retried = client.post("/api/analyze", data=_form())
    assert retried.status_code == 200
    assert retried.get_json()["result"] == FULL_RESPONSE


def test_concurrent_submission_is_rejected(client, flask_app, fake_client):
    with client.session_transaction() as sess:
        sess["submission_session_id"] = "browser-1"
    flask_app.extensions["submission_registry"].tracker_for("browser-1").begin()

    response = client.post("/api/analyze", data=_form())

    assert response.status_code == 409
    assert fake_client.calls == []


def test_finished_submissions_do_not_accumulate_trackers(flask_app, fake_client):
    fake_client.queue(CompletionFailure())
    api_client = flask_app.test_client(use_cookies=False)

    statuses = [api_client.post("/api/analyze", data=_form()).status_code for _ in range(5)]

    assert statuses == [502, 200, 200, 200, 200]
    assert len(flask_app.extensions["submission_registry"]) == 0


def test_html_submission_renders_sections(client, fake_client):
    fake_client.queue(FULL_RESPONSE)

    response = client.post("/", data=_form())

    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert "<h3>IELTS Writing Analysis</h3>" in body
    assert "<li>Task Achievement: 7/9</li>" in body
    assert "<hr>" in body
    assert "Your Analysis Will Appear Here" not in body


def test_html_submission_falls_back_to_raw_text(client, fake_client):
    fake_client.queue("### Unexpected shape")

    body = client.post("/", data=_form()).get_data(as_text=True)

    assert "<pre>### Unexpected shape</pre>" in body


def test_html_error_replaces_result(client, fake_client):
    fake_client.queue(CompletionFailure())

    response = client.post("/", data=_form())

    assert response.status_code == 502
    body = response.get_data(as_text=True)
    assert "An error occurred: Failed to get a response from the AI." in body
    assert "Your Analysis Will Appear Here" not in body


def test_html_error_is_rendered_inside_output_panel(client, fake_client):
    fake_client.queue(CompletionFailure())

    body = client.post("/", data=_form()).get_data(as_text=True)

    error_at = body.index('<p class="error">')
    assert body.count('<p class="error">') == 1
    assert body.index('<div id="output">') < error_at < body.index("<!-- /output -->")


def test_request_over_content_limit_returns_size_message(fake_client):
    app = create_app('testing', MAX_CONTENT_LENGTH=256)
    app.extensions['gemini_client'] = fake_client
    data = _form(essay_mode="image", essay_image=(io.BytesIO(b"x" * 1024), "essay.png"))

    response = app.test_client().post("/api/analyze", data=data, content_type="multipart/form-data")

    assert response.status_code == 413
    assert response.get_json()["error"] == "Image size should not exceed 4MB."


@pytest.mark.parametrize("text, task_type, expected", [
    ("", "Task 2", {"count": 0, "status": "empty"}),
    ("one two three", "Task 1", {"count": 3, "status": "short"}),
    (" ".join(["w"] * 150), "Task 1", {"count": 150, "status": "ok"}),
    (" ".join(["w"] * 150), "Task 2", {"count": 150, "status": "short"}),
])
def test_word_count_endpoint(client, text, task_type, expected):
    response = client.post("/api/word-count", json={"text": text, "task_type": task_type})
    assert response.get_json() == expected


def test_healthz_reports_client(client):
    assert client.get("/healthz").get_json() == {
        "status": "ok",
        "gemini_configured": True,
        "model": "fake-model",
    }


@pytest.mark.parametrize("body", [
    {"text": "one two", "task_type": 1},
    {"text": 5, "task_type": "Task 2"},
    ["one", "two"],
])
def test_word_count_endpoint_rejects_malformed_json(client, body):
    response = client.post("/api/word-count", json=body)
    assert response.status_code == 400
    assert "error" in response.get_json()
