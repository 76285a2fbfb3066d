"""Builder Lambda - REST API for signing package generation.

This Lambda function provides REST API endpoints for:
- Building the flattened signing package (POST /package)
- Building the editable singles archive (POST /singles)
- Rendering the info cover page (POST /cover)

Request body:
    {
        "record": {...CRM record...},
        "lender": "TD",              # optional, resolved from Lender_Name otherwise
        "packageType": "standard",   # or "heloc"
        "uploads": {"UPLOAD_Commitment.pdf": "<base64>", ...}
    }

Outputs are written to the output bucket and returned as presigned URLs.
"""

import base64
import binascii
import json
import os
import uuid
from typing import Any, Optional

import boto3
from botocore.config import Config

from signing_package.assembly.sources import get_template_source
from signing_package.builder import PackageBuilder
from signing_package.common.config import get_settings
from signing_package.common.exceptions import PackageBuildError
from signing_package.common.models import NamedDocument
from signing_package.common.safe_log import safe_log

# Get region for S3 regional endpoint (avoids 307 redirect CORS issues)
AWS_REGION = os.environ.get("AWS_REGION", "us-west-2")

s3_config = Config(
    region_name=AWS_REGION,
    signature_version="s3v4",
)
s3_client = boto3.client("s3", config=s3_config, region_name=AWS_REGION)

# Configuration
OUTPUT_PREFIX = os.environ.get("OUTPUT_PREFIX", "packages/")
URL_EXPIRY_SECONDS = int(os.environ.get("URL_EXPIRY_SECONDS", "3600"))
CORS_ORIGIN = os.environ.get("CORS_ORIGIN", "*")

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".zip": "application/zip",
}

_builder: Optional[PackageBuilder] = None


def get_builder() -> PackageBuilder:
    """Get the warm-container builder (manifest and field map loaded once)."""
    global _builder
    if _builder is None:
        settings = get_settings()
        _builder = PackageBuilder(get_template_source(settings), settings)
    return _builder


def cors_headers() -> dict[str, str]:
    """Return CORS headers for API responses."""
    return {
        "Access-Control-Allow-Origin": CORS_ORIGIN,
        "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Api-Key",
        "Access-Control-Allow-Methods": "POST,OPTIONS",
        "Content-Type": "application/json",
    }


def response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    """Create API Gateway response with CORS headers."""
    return {
        "statusCode": status_code,
        "headers": cors_headers(),
        "body": json.dumps(body, default=str),
    }


def decode_uploads(raw: Any) -> dict[str, bytes]:
    """Decode base64 upload blobs keyed by slot id."""
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise ValueError("uploads must be an object keyed by slot id")

    uploads = {}
    for slot, encoded in raw.items():
        if not encoded:
            continue
        try:
            uploads[slot] = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Upload {slot} is not valid base64: {e}") from e
    return uploads


def store_document(document: NamedDocument) -> dict[str, Any]:
    """Write an output document to S3 and return a presigned download URL."""
    bucket = get_settings().output_bucket
    if not bucket:
        raise RuntimeError("OUTPUT_BUCKET environment variable is required")

    key = f"{OUTPUT_PREFIX}{uuid.uuid4()}/{document.name}"
    extension = os.path.splitext(document.name)[1].lower()
    content_type = CONTENT_TYPES.get(extension, "application/octet-stream")

    s3_client.put_object(Bucket=bucket, Key=key, Body=document.content, ContentType=content_type)

    download_url = s3_client.generate_presigned_url(
        "get_object",
        Params={
            "Bucket": bucket,
            "Key": key,
            "ResponseContentType": content_type,
            "ResponseContentDisposition": f'attachment; filename="{document.name}"',
        },
        ExpiresIn=URL_EXPIRY_SECONDS,
    )

    return {
        **document.to_dict(),
        "key": key,
        "downloadUrl": download_url,
        "expiresIn": URL_EXPIRY_SECONDS,
    }


def build_package(body: dict[str, Any]) -> dict[str, Any]:
    builder = get_builder()
    document = builder.build_signing_package(
        body.get("record") or {},
        decode_uploads(body.get("uploads")),
        lender=body.get("lender"),
        package_type=body.get("packageType") or "standard",
    )
    return store_document(document)


def build_singles(body: dict[str, Any]) -> dict[str, Any]:
    document = get_builder().build_editable_singles(
        body.get("record") or {}, lender=body.get("lender")
    )
    return store_document(document)


def build_cover(body: dict[str, Any]) -> dict[str, Any]:
    document = get_builder().build_info_cover(body.get("record") or {})
    return store_document(document)


ROUTES = {
    "/package": build_package,
    "/singles": build_singles,
    "/cover": build_cover,
}


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Main Lambda handler for API Gateway requests."""
    http_method = event.get("httpMethod", event.get("requestContext", {}).get("http", {}).get("method", ""))
    path = event.get("path", event.get("rawPath", ""))
    safe_log("Builder Lambda received request", method=http_method, path=path)

    # Handle OPTIONS (CORS preflight)
    if http_method == "OPTIONS":
        return response(200, {"message": "CORS preflight"})

    route = ROUTES.get(path.rstrip("/"))
    if route is None or http_method != "POST":
        return response(404, {"error": "Not found", "path": path, "method": http_method})

    body = event.get("body") or {}
    if isinstance(body, str):
        try:
            if event.get("isBase64Encoded"):
                body = base64.b64decode(body).decode("utf-8")
            body = json.loads(body)
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError):
            return response(400, {"error": "Invalid JSON body"})
    if not isinstance(body, dict):
        return response(400, {"error": "Request body must be a JSON object"})

    try:
        return response(200, route(body))

    except PackageBuildError as e:
        safe_log("Build rejected", path=path, error=e.to_dict())
        return response(400, e.to_dict())

    except ValueError as e:
        safe_log("Invalid request", path=path, error=str(e))
        return response(400, {"error": "Invalid request", "message": str(e)})

    except Exception as e:
        safe_log("Error processing request", path=path, error=str(e))
        return response(500, {"error": "Internal server error", "message": str(e)})
