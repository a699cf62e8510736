import os
import json
from datetime import datetime, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError

AWS_REGION = os.environ.get("AWS_REGION", "eu-west-1")
SQS_QUEUE_URL = os.environ.get("SQS_QUEUE_URL")
SNS_TOPIC_ARN = os.environ.get("SNS_TOPIC_ARN")


def get_sqs_client():
    """
    Return a boto3 SQS client.
    """
    return boto3.client("sqs", region_name=AWS_REGION)


def get_sns_client():
    """
    Return a boto3 SNS client.
    """
    return boto3.client("sns", region_name=AWS_REGION)


def build_order_event(order) -> dict:
    """
    Message body describing a placed order. Game keys are not included.
    """
    return {
        "order_id": order.order_id,
        "user_id": order.user_id,
        "total": order.total,
        "games": [
            {"game_id": it["game_id"], "title": it["title"], "price": it["price"]}
            for it in order.items
        ],
        "created_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "source": "gamecart-web",
    }


def send_order_event_to_sqs(order):
    """
    Send an order event message to SQS.
    """
    if not SQS_QUEUE_URL:
        raise RuntimeError("SQS_QUEUE_URL environment variable is not set.")

    sqs = get_sqs_client()

    try:
        sqs.send_message(
            QueueUrl=SQS_QUEUE_URL,
            MessageBody=json.dumps(build_order_event(order)),
        )
    except (BotoCoreError, ClientError) as e:
        raise RuntimeError(f"Failed to send order event to SQS: {e}") from e


def notify_order_via_sns(order, user_email: str):
    """
    Publish a purchase notification to SNS.
    """
    if not SNS_TOPIC_ARN:
        raise RuntimeError("SNS_TOPIC_ARN environment variable is not set.")

    sns = get_sns_client()

    titles = ", ".join(it["title"] for it in order.items)
    message = (
        f"New games purchased.\n\n"
        f"Order ID: {order.order_id}\n"
        f"Buyer: {user_email}\n"
        f"Games: {titles}\n"
        f"Total: €{order.total:.2f}\n"
    )

    try:
        sns.publish(
            TopicArn=SNS_TOPIC_ARN,
            Subject=f"Game Store order #{order.order_id}",
            Message=message,
        )
    except (BotoCoreError, ClientError) as e:
        raise RuntimeError(f"Failed to publish order notification to SNS: {e}") from e
