import io
import json

import pytest
from botocore.exceptions import ClientError
from werkzeug.datastructures import FileStorage

import gamecart.aws_events as aws_events
import gamecart.storage_s3 as storage_s3
from gamecart import PlacedOrder


ORDER = PlacedOrder(
    order_id=42,
    user_id=7,
    total=35.5,
    items=[
        {"game_id": 1, "title": "A", "price": 10.0, "game_key": "key-a"},
        {"game_id": 2, "title": "B", "price": 25.5, "game_key": "key-b"},
    ],
)


class FakeClient:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def _record(self, name, kwargs):
        if self.error:
            raise self.error
        self.calls.append((name, kwargs))

    def send_message(self, **kwargs):
        self._record("send_message", kwargs)

    def publish(self, **kwargs):
        self._record("publish", kwargs)

    def upload_fileobj(self, **kwargs):
        self._record("upload_fileobj", kwargs)


def client_error(operation):
    return ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, operation)


class TestOrderEvents:

    def test_event_body_leaves_out_game_keys(self):
        event = aws_events.build_order_event(ORDER)

        assert event["order_id"] == 42
        assert event["total"] == 35.5
        assert event["games"] == [
            {"game_id": 1, "title": "A", "price": 10.0},
            {"game_id": 2, "title": "B", "price": 25.5},
        ]
        assert "key-a" not in json.dumps(event)

    def test_send_to_sqs(self, monkeypatch):
        fake = FakeClient()
        monkeypatch.setattr(aws_events, "SQS_QUEUE_URL", "https://sqs.test/queue")
        monkeypatch.setattr(aws_events, "get_sqs_client", lambda: fake)

        aws_events.send_order_event_to_sqs(ORDER)

        name, kwargs = fake.calls[0]
        assert name == "send_message"
        assert kwargs["QueueUrl"] == "https://sqs.test/queue"
        assert json.loads(kwargs["MessageBody"])["order_id"] == 42

    def test_missing_queue_url(self, monkeypatch):
        monkeypatch.setattr(aws_events, "SQS_QUEUE_URL", None)

        with pytest.raises(RuntimeError, match="SQS_QUEUE_URL"):
            aws_events.send_order_event_to_sqs(ORDER)

    def test_sqs_client_error_is_wrapped(self, monkeypatch):
        monkeypatch.setattr(aws_events, "SQS_QUEUE_URL", "https://sqs.test/queue")
        monkeypatch.setattr(aws_events, "get_sqs_client",
                            lambda: FakeClient(client_error("SendMessage")))

        with pytest.raises(RuntimeError, match="Failed to send order event"):
            aws_events.send_order_event_to_sqs(ORDER)

    def test_sns_notification(self, monkeypatch):
        fake = FakeClient()
        monkeypatch.setattr(aws_events, "SNS_TOPIC_ARN", "arn:aws:sns:eu-west-1:1:orders")
        monkeypatch.setattr(aws_events, "get_sns_client", lambda: fake)

        aws_events.notify_order_via_sns(ORDER, "buyer@example.test")

        name, kwargs = fake.calls[0]
        assert name == "publish"
        assert kwargs["Subject"] == "Game Store order #42"
        assert "buyer@example.test" in kwargs["Message"]
        assert "A, B" in kwargs["Message"]


class TestCoverUpload:

    def make_file(self, name="cover.png"):
        return FileStorage(stream=io.BytesIO(b"img"), filename=name, content_type="image/png")

    def test_allowed_cover(self):
        assert storage_s3.allowed_cover("x.PNG")
        assert not storage_s3.allowed_cover("x.exe")
        assert not storage_s3.allowed_cover("noext")

    def test_cover_key_is_scoped_to_developer(self):
        key = storage_s3.cover_key(3, "../My Cover.png")

        assert key.startswith("game-covers/3/")
        assert key.endswith("_My_Cover.png")

    def test_upload_returns_public_url(self, monkeypatch):
        fake = FakeClient()
        monkeypatch.setattr(storage_s3, "S3_BUCKET_NAME", "covers")
        monkeypatch.setattr(storage_s3, "get_s3_client", lambda: fake)

        url = storage_s3.upload_game_cover(self.make_file(), 3)

        _, kwargs = fake.calls[0]
        assert kwargs["Bucket"] == "covers"
        assert kwargs["ExtraArgs"] == {"ContentType": "image/png"}
        assert url == f"https://covers.s3.{storage_s3.AWS_REGION}.amazonaws.com/{kwargs['Key']}"

    def test_rejects_bad_extension(self, monkeypatch):
        monkeypatch.setattr(storage_s3, "S3_BUCKET_NAME", "covers")

        with pytest.raises(RuntimeError, match="Invalid image type"):
            storage_s3.upload_game_cover(self.make_file("virus.exe"), 3)

    def test_s3_error_is_wrapped(self, monkeypatch):
        monkeypatch.setattr(storage_s3, "S3_BUCKET_NAME", "covers")
        monkeypatch.setattr(storage_s3, "get_s3_client",
                            lambda: FakeClient(client_error("PutObject")))

        with pytest.raises(RuntimeError, match="Failed to upload cover"):
            storage_s3.upload_game_cover(self.make_file(), 3)
