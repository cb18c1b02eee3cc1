from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .aws import ddb
from .settings import S

@dataclass(frozen=True)
class Tables:
    posts: Any
    users: Any
    communities: Any

T = Tables(
    posts=ddb.Table(S.posts_table_name),
    users=ddb.Table(S.users_table_name),
    communities=ddb.Table(S.communities_table_name),
)
