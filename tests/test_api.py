"""Tests for the REST API and WebSocket endpoints.

Covers:
  - Health and pose detection (engine available / unavailable)
  - Stateless frame analysis
  - Session records, analysis rows and reports (stored vs. live)
  - /ws relay between observers, malformed payloads
  - /ws/coach live coaching protocol, malformed messages
"""

from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from main import app
from plankcoach.api.dependencies import get_detector_factory, get_store
from plankcoach.api.websocket import ConnectionManager, RelayTelemetry
from plankcoach.domain import PoseEngineUnavailableError, PoseFrame
from plankcoach.services import CoachingSession, InMemorySessionStore, ReportAggregator

from pose_builders import collapsed_plank, high_plank


def _frame_json(frame: PoseFrame) -> dict:
    return {
        "landmarks": [
            {"x": lm.x, "y": lm.y, "z": lm.z, "visibility": lm.visibility}
            for lm in frame.landmarks
        ],
        "timestamp_ms": 0,
        "frame_number": 0,
    }


class FakeDetector:
    """Pose detector stand-in that always finds a high plank."""

    def __init__(self, frame: Optional[PoseFrame] = None):
        self.frame = frame
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self.closed = True

    def detect_from_base64(self, base64_image, timestamp_ms=0, frame_number=0):
        if base64_image == "garbage":
            raise ValueError("Could not decode image")
        return self.frame


def _unavailable():
    raise PoseEngineUnavailableError("No module named 'mediapipe'")


def _receive_until(websocket, msg_type: str, limit: int = 20) -> List[dict]:
    """Read messages until one of `msg_type` arrives; return everything read."""
    messages = []
    for _ in range(limit):
        message = websocket.receive_json()
        messages.append(message)
        if message["type"] == msg_type:
            return messages
    raise AssertionError(f"No '{msg_type}' message in {messages}")


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_detector_factory] = lambda: _unavailable
    yield TestClient(app)
    app.dependency_overrides.clear()


def _use_detector(detector: FakeDetector) -> None:
    app.dependency_overrides[get_detector_factory] = lambda: (lambda: detector)


# ============================================================================
# Test: Health and pose detection
# ============================================================================

class TestHealth:

    def test_root(self, client):
        assert client.get("/").json()["health"] == "/api/health"

    def test_health_without_pose_engine(self, client):
        data = client.get("/api/health").json()
        assert data["status"] == "healthy"
        assert data["pose_engine_available"] is False

    def test_health_with_pose_engine(self, client):
        _use_detector(FakeDetector())
        assert client.get("/api/health").json()["pose_engine_available"] is True


class TestPoseDetection:

    def test_unavailable_engine_is_503(self, client):
        response = client.post("/api/pose/detect", json={"image_base64": "aGVsbG8="})
        assert response.status_code == 503

    def test_detected_pose(self, client):
        detector = FakeDetector(high_plank())
        _use_detector(detector)

        data = client.post("/api/pose/detect", json={"image_base64": "aGVsbG8="}).json()

        assert data["success"] is True
        assert len(data["pose"]["landmarks"]) == 33
        assert data["pose"]["landmarks"][11]["body_part"] == "LEFT_SHOULDER"
        assert detector.closed

    def test_no_person(self, client):
        _use_detector(FakeDetector(None))
        data = client.post("/api/pose/detect", json={"image_base64": "aGVsbG8="}).json()
        assert data["success"] is False
        assert data["error"] == "No person detected in image"

    def test_bad_image(self, client):
        _use_detector(FakeDetector(high_plank()))
        data = client.post("/api/pose/detect", json={"image_base64": "garbage"}).json()
        assert data["success"] is False
        assert "decode" in data["error"]


# ============================================================================
# Test: Frame analysis
# ============================================================================

class TestAnalysis:

    def test_perfect_frame(self, client):
        data = client.post("/api/analysis", json=_frame_json(high_plank())).json()

        assert data["overall_score"] == 100
        assert data["plank_type"] == "high"
        assert data["feedback"] == []

    def test_collapsed_frame(self, client):
        data = client.post("/api/analysis", json=_frame_json(collapsed_plank())).json()

        assert data["overall_score"] == 33
        assert data["feedback"][0] == "Raise your hips"

    def test_empty_frame_rejected(self, client):
        response = client.post("/api/analysis", json={"landmarks": []})
        assert response.status_code == 422


# ============================================================================
# Test: Sessions
# ============================================================================

class TestSessions:

    def test_create_get_list(self, client):
        response = client.post("/api/sessions", json={"plank_type": "elbow"})
        assert response.status_code == 201
        session = response.json()
        assert session["plank_type"] == "elbow"
        assert session["completed"] is False

        assert client.get(f"/api/sessions/{session['id']}").json()["id"] == session["id"]
        assert [s["id"] for s in client.get("/api/sessions").json()] == [session["id"]]

    def test_partial_update(self, client):
        session_id = client.post("/api/sessions", json={"plank_type": "high"}).json()["id"]

        data = client.patch(
            f"/api/sessions/{session_id}",
            json={"duration_seconds": 65, "completed": True, "average_score": 84},
        ).json()

        assert data["duration_seconds"] == 65
        assert data["completed"] is True
        assert data["average_score"] == 84
        assert data["plank_type"] == "high"

    @pytest.mark.parametrize("field", ["duration_seconds", "completed", "plank_type"])
    def test_null_for_required_field_rejected(self, client, field):
        session_id = client.post("/api/sessions", json={"plank_type": "high"}).json()["id"]

        response = client.patch(f"/api/sessions/{session_id}", json={field: None})
        assert response.status_code == 422

        data = client.get(f"/api/sessions/{session_id}").json()
        assert data["duration_seconds"] == 0
        assert data["completed"] is False
        assert data["plank_type"] == "high"

    def test_null_clears_optional_score(self, client):
        session_id = client.post("/api/sessions", json={"plank_type": "high"}).json()["id"]
        client.patch(f"/api/sessions/{session_id}", json={"average_score": 84})

        data = client.patch(f"/api/sessions/{session_id}", json={"average_score": None}).json()
        assert data["average_score"] is None

    def test_unknown_session_is_404(self, client):
        assert client.get("/api/sessions/nope").status_code == 404
        assert client.patch("/api/sessions/nope", json={"completed": True}).status_code == 404
        assert client.get("/api/sessions/nope/analysis").status_code == 404
        assert client.get("/api/sessions/nope/report").status_code == 404

    def test_analysis_rows_and_report(self, client):
        session_id = client.post("/api/sessions", json={"plank_type": "high"}).json()["id"]
        perfect = client.post("/api/analysis", json=_frame_json(high_plank())).json()
        collapsed = client.post("/api/analysis", json=_frame_json(collapsed_plank())).json()

        for row in (perfect, perfect, collapsed):
            response = client.post(f"/api/sessions/{session_id}/analysis", json=row)
            assert response.status_code == 201

        rows = client.get(f"/api/sessions/{session_id}/analysis").json()
        assert [r["overall_score"] for r in rows] == [100, 100, 33]

        report = client.get(f"/api/sessions/{session_id}/report").json()
        assert report["body_alignment_score"] == 100
        assert report["average_score"] == 78
        assert report["grade"] == "B"

    def test_report_without_samples(self, client):
        session_id = client.post("/api/sessions", json={"plank_type": "elbow"}).json()["id"]
        report = client.get(f"/api/sessions/{session_id}/report").json()

        assert report["plank_type"] == "elbow"
        assert report["shoulder_stack_score"] == 50

    def test_completed_session_reports_live_scores(self, client, store):
        coaching = CoachingSession(
            repository=store,
            telemetry=RelayTelemetry(store, ConnectionManager()),
        )
        # Good form through identification and the grace period, then collapse
        for now in range(0, 2300, 100):
            coaching.process_frame(high_plank(), now)
        for now in range(2300, 3001, 100):
            coaching.process_frame(collapsed_plank(), now)
        coaching.stop(3000)

        live = coaching.report
        rows = store.get_session_analysis(coaching.session_id)
        assert ReportAggregator().aggregate(rows).average_score != live.average_score

        report = client.get(f"/api/sessions/{coaching.session_id}/report").json()

        assert live.average_score == 33
        assert report["average_score"] == live.average_score
        assert report["body_alignment_score"] == live.body_alignment_score
        assert report["knee_position_score"] == live.knee_position_score
        assert report["shoulder_stack_score"] == live.shoulder_stack_score
        assert report["grade"] == live.grade
        assert report["plank_type"] == "high"


# ============================================================================
# Test: WebSocket relay
# ============================================================================

class TestRelay:

    def test_pose_analysis_relayed_and_stored(self, client, store):
        session_id = client.post("/api/sessions", json={"plank_type": "high"}).json()["id"]

        with client.websocket_connect("/ws") as sender, client.websocket_connect("/ws") as observer:
            sender.send_json({"type": "chat", "data": {}})
            sender.send_json({
                "type": "pose_analysis",
                "sessionId": session_id,
                "data": {"overallScore": 91, "plankType": "high", "feedback": []},
            })

            message = observer.receive_json()

        assert message["type"] == "pose_analysis"
        assert message["sessionId"] == session_id
        assert message["data"]["overallScore"] == 91
        assert [r.overall_score for r in store.get_session_analysis(session_id)] == [91]

    def test_invalid_json(self, client):
        with client.websocket_connect("/ws") as websocket:
            websocket.send_text("{not json")
            assert websocket.receive_json()["type"] == "error"

    @pytest.mark.parametrize("data", [[1, 2], "oops", 42])
    def test_non_object_payload_keeps_socket_open(self, client, data):
        with client.websocket_connect("/ws") as websocket:
            websocket.send_json({"type": "pose_analysis", "sessionId": "s1", "data": data})
            error = websocket.receive_json()
            assert error["type"] == "error"
            assert "Invalid analysis" in error["data"]["error"]

            websocket.send_text("{not json")
            assert websocket.receive_json()["data"]["error"] == "Invalid JSON"


# ============================================================================
# Test: Live coaching
# ============================================================================

class TestCoachSocket:

    def test_frames_and_stop(self, client):
        with client.websocket_connect("/ws/coach") as websocket:
            started = websocket.receive_json()
            assert started["type"] == "session_started"
            assert started["data"]["session"]["state"] == "idle"

            websocket.send_json({"type": "landmarks", "data": _frame_json(high_plank())})
            messages = _receive_until(websocket, "analysis")
            assert messages[-1]["data"]["overallScore"] == 100

            websocket.send_json({"type": "stop"})
            messages = _receive_until(websocket, "report")

        report = messages[-1]["data"]
        assert report["reason"] == "manual"
        assert report["report"] is None

    def test_unknown_message_type(self, client):
        with client.websocket_connect("/ws/coach") as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "dance"})
            error = _receive_until(websocket, "error")[-1]
            assert error["data"]["error"].startswith("Invalid message")

            # Server-to-client types are not accepted from the client
            websocket.send_json({"type": "analysis", "data": {}})
            error = _receive_until(websocket, "error")[-1]
            assert error["data"]["error"] == "Unknown message type: analysis"

            websocket.send_json({"type": "stop"})
            _receive_until(websocket, "report")

    @pytest.mark.parametrize("message", [
        {"type": "landmarks", "data": {**_frame_json(high_plank()), "timestamp_ms": None}},
        {"type": "landmarks", "data": [1, 2, 3]},
        {"type": "landmarks", "data": {"landmarks": [{"x": "left"}]}},
        {"type": "frame", "data": {"image_base64": "aGVsbG8=", "frame_number": None}},
        {"type": "transcript", "data": "stop"},
        ["landmarks"],
    ])
    def test_malformed_message_keeps_session_running(self, client, message):
        with client.websocket_connect("/ws/coach") as websocket:
            websocket.receive_json()
            websocket.send_json(message)
            error = _receive_until(websocket, "error")
            assert [m["type"] for m in error] == ["error"]

            websocket.send_json({"type": "landmarks", "data": _frame_json(high_plank())})
            messages = _receive_until(websocket, "analysis")
            assert "report" not in [m["type"] for m in messages]

            websocket.send_json({"type": "stop"})
            report = _receive_until(websocket, "report")[-1]

        assert report["data"]["reason"] == "manual"

    def test_empty_landmark_frame_is_accepted(self, client):
        with client.websocket_connect("/ws/coach") as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "landmarks", "data": {"landmarks": []}})
            websocket.send_json({"type": "landmarks", "data": _frame_json(high_plank())})
            messages = _receive_until(websocket, "analysis")
            assert "error" not in [m["type"] for m in messages]

            websocket.send_json({"type": "stop"})
            _receive_until(websocket, "report")

    def test_camera_frame_without_engine_is_unavailable(self, client):
        with client.websocket_connect("/ws/coach") as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "frame", "data": {"image_base64": "aGVsbG8="}})
            messages = _receive_until(websocket, "state")

        assert messages[-1]["data"]["state"] == "unavailable"
        assert "mediapipe" in messages[-1]["data"]["reason"]

    def test_camera_frame_with_engine(self, client):
        _use_detector(FakeDetector(high_plank()))

        with client.websocket_connect("/ws/coach") as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "frame", "data": {"image_base64": "aGVsbG8="}})
            messages = _receive_until(websocket, "analysis")
            assert messages[-1]["data"]["plankType"] == "high"

            websocket.send_json({"type": "stop"})
            _receive_until(websocket, "report")
