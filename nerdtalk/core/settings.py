from __future__ import annotations

import os
from dataclasses import dataclass

@dataclass(frozen=True)
class Settings:
    # AWS
    aws_region: str = os.environ.get("AWS_REGION", "us-east-1")
    # Points boto3 at DynamoDB Local / LocalStack when set
    ddb_endpoint_url: str = os.environ.get("DDB_ENDPOINT_URL", "")

    # Cognito (optional wiring; auth is pluggable)
    cognito_user_pool_id: str = os.environ.get("COGNITO_USER_POOL_ID", "")
    cognito_region: str = os.environ.get("COGNITO_REGION", "")
    cognito_app_client_id: str = os.environ.get("COGNITO_APP_CLIENT_ID", "")
    cognito_expected_token_use: str = os.environ.get("COGNITO_EXPECTED_TOKEN_USE", "access")

    # DynamoDB tables
    posts_table_name: str = os.environ.get("POSTS_TABLE_NAME", "nerdtalk_posts")
    users_table_name: str = os.environ.get("USERS_TABLE_NAME", "nerdtalk_users")
    communities_table_name: str = os.environ.get("COMMUNITIES_TABLE_NAME", "nerdtalk_communities")

    # Secondary indexes
    posts_parent_index: str = os.environ.get("POSTS_PARENT_INDEX", "parent_id-created_at-index")
    posts_feed_index: str = os.environ.get("POSTS_FEED_INDEX", "feed-created_at-index")
    communities_external_index: str = os.environ.get("COMMUNITIES_EXTERNAL_INDEX", "external_id-index")

    # Posting rules
    min_text_length: int = int(os.environ.get("NERDTALK_MIN_TEXT_LENGTH", "3"))
    max_text_length: int = int(os.environ.get("NERDTALK_MAX_TEXT_LENGTH", "5000"))

    # Feed paging
    default_page_size: int = int(os.environ.get("FEED_PAGE_SIZE", "20"))
    max_page_size: int = int(os.environ.get("FEED_MAX_PAGE_SIZE", "100"))

    # Organization webhooks (svix-style signing secret, "whsec_..." accepted)
    webhook_secret: str = os.environ.get("ORG_WEBHOOK_SECRET", "")
    webhook_tolerance_seconds: int = int(os.environ.get("ORG_WEBHOOK_TOLERANCE_SECONDS", "300"))

    metrics_enabled: bool = os.environ.get("METRICS_ENABLED", "1") not in ("0", "false", "False")
    audit_log_enabled: bool = os.environ.get("AUDIT_LOG_ENABLED", "1") not in ("0", "false", "False")
    log_level: str = os.environ.get("LOG_LEVEL", "INFO").upper()


S = Settings()
