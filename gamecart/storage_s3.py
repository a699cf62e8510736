import os
import uuid

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from werkzeug.utils import secure_filename

S3_BUCKET_NAME = os.environ.get("S3_BUCKET_NAME")
AWS_REGION = os.environ.get("AWS_REGION", "eu-west-1")

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


def get_s3_client():
    return boto3.client("s3", region_name=AWS_REGION)


def allowed_cover(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def cover_key(developer_id: int, filename: str) -> str:
    # Random prefix so two uploads with the same name never overwrite each other.
    name = secure_filename(filename) or "cover"
    return f"game-covers/{developer_id}/{uuid.uuid4().hex[:8]}_{name}"


def upload_game_cover(file_storage, developer_id: int) -> str:
    """
    Upload a game cover to S3 and return its public URL.

    The bucket is public-read through its policy; no ACL is set on the
    object.
    """
    if not S3_BUCKET_NAME:
        raise RuntimeError("S3_BUCKET_NAME environment variable is not set.")
    if not allowed_cover(file_storage.filename or ""):
        raise RuntimeError(
            "Invalid image type. Allowed: " + ", ".join(sorted(ALLOWED_EXTENSIONS)) + "."
        )

    key = cover_key(developer_id, file_storage.filename)

    try:
        get_s3_client().upload_fileobj(
            Fileobj=file_storage,
            Bucket=S3_BUCKET_NAME,
            Key=key,
            ExtraArgs={"ContentType": file_storage.mimetype or "image/jpeg"},
        )
    except (BotoCoreError, ClientError) as e:
        raise RuntimeError(f"Failed to upload cover to S3: {e}") from e

    return f"https://{S3_BUCKET_NAME}.s3.{AWS_REGION}.amazonaws.com/{key}"
