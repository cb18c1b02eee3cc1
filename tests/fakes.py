"""In-memory stand-ins for the DynamoDB tables the services talk to."""
from __future__ import annotations

import copy
import itertools
import re
from contextlib import ExitStack, contextmanager
from types import SimpleNamespace
from typing import Any, Dict, Iterator, List, Optional, Tuple
from unittest.mock import patch

from botocore.exceptions import ClientError

from nerdtalk.core.settings import S
from nerdtalk.services import communities, indexes, posts, users

_CLAUSE_RE = re.compile(r"\b(SET|ADD|DELETE|REMOVE)\b")
_CALL_RE = re.compile(r"^(\w+)\((.*)\)$", re.S)
_COND_RE = re.compile(r"^(attribute_exists|attribute_not_exists)\((\w+)\)$")
_EQ_RE = re.compile(r"^(\w+)(?:\[(\d+)\])? = (:\w+)$")
_INDEX_RE = re.compile(r"^(\w+)\[(\d+)\]$")


def _client_error(code: str, operation: str, message: str = "simulated") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def _split_top(s: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    cur: List[str] = []
    for ch in s:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(cur).strip())
            cur = []
        else:
            cur.append(ch)
    tail = "".join(cur).strip()
    if tail:
        parts.append(tail)
    return parts


def _subst_names(expr: str, names: Optional[Dict[str, str]]) -> str:
    for placeholder in sorted(names or {}, key=len, reverse=True):
        expr = expr.replace(placeholder, names[placeholder])
    return expr


def _eval(expr: str, item: Dict[str, Any], values: Dict[str, Any]) -> Any:
    expr = expr.strip()
    if expr.startswith(":"):
        return copy.deepcopy(values[expr])
    m = _CALL_RE.match(expr)
    if m:
        fn, args = m.group(1), _split_top(m.group(2))
        if fn == "if_not_exists":
            path = args[0].strip()
            return copy.deepcopy(item[path]) if path in item else _eval(args[1], item, values)
        if fn == "list_append":
            return list(_eval(args[0], item, values)) + list(_eval(args[1], item, values))
        raise NotImplementedError(fn)
    return copy.deepcopy(item.get(expr))


def _matches(cond: Any, item: Dict[str, Any]) -> bool:
    expr = cond.get_expression()
    op = expr["operator"]
    vals = expr["values"]
    if op == "AND":
        return all(_matches(c, item) for c in vals)
    name = vals[0].name
    if name not in item:
        return False
    if op == "=":
        return item[name] == vals[1]
    if op == "begins_with":
        return str(item[name]).startswith(vals[1])
    raise NotImplementedError(op)


class FakeTable:
    def __init__(self, key: str, indexes: Optional[Dict[str, Tuple[str, Optional[str]]]] = None):
        self.key = key
        self.indexes = indexes or {}
        self.items: Dict[str, Dict[str, Any]] = {}
        self.fail_on: set = set()
        self.calls: List[str] = []

    # helpers
    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise _client_error("ProvisionedThroughputExceededException", operation)

    def _check(self, condition: Optional[str], existing: Optional[Dict[str, Any]], names, operation: str, values=None) -> None:
        if not condition:
            return
        for clause in _subst_names(condition, names).split(" AND "):
            clause = clause.strip()
            m = _COND_RE.match(clause)
            if m:
                fn, attr = m.groups()
                ok = (fn == "attribute_exists") == (existing is not None and attr in existing)
            else:
                eq = _EQ_RE.match(clause)
                if not eq:
                    raise NotImplementedError(clause)
                attr, idx, placeholder = eq.groups()
                current = (existing or {}).get(attr)
                if idx is not None:
                    current = current[int(idx)] if isinstance(current, list) and int(idx) < len(current) else None
                ok = current is not None and current == (values or {})[placeholder]
            if not ok:
                raise _client_error("ConditionalCheckFailedException", operation, "The conditional request failed")

    def _page(self, rows: List[Dict[str, Any]], limit: Optional[int], start_key, *, count_only: bool = False):
        start = 0
        if start_key:
            pk = start_key[self.key]
            start = next(i for i, r in enumerate(rows) if r[self.key] == pk) + 1
        chunk = rows[start:start + limit] if limit else rows[start:]
        resp: Dict[str, Any] = {"Count": len(chunk), "ScannedCount": len(chunk)}
        if not count_only:
            resp["Items"] = copy.deepcopy(chunk)
        if limit and start + limit < len(rows):
            resp["LastEvaluatedKey"] = {self.key: chunk[-1][self.key]}
        return resp

    # table API
    def get_item(self, Key, **kwargs):
        self._maybe_fail("GetItem")
        item = self.items.get(Key[self.key])
        return {"Item": copy.deepcopy(item)} if item else {}

    def put_item(self, Item, ConditionExpression=None, ExpressionAttributeNames=None, **kwargs):
        self._maybe_fail("PutItem")
        self._check(ConditionExpression, self.items.get(Item[self.key]), ExpressionAttributeNames, "PutItem")
        self.items[Item[self.key]] = copy.deepcopy(Item)
        return {}

    def delete_item(self, Key, ReturnValues=None, ConditionExpression=None, ExpressionAttributeNames=None, **kwargs):
        self._maybe_fail("DeleteItem")
        self._check(ConditionExpression, self.items.get(Key[self.key]), ExpressionAttributeNames, "DeleteItem")
        old = self.items.pop(Key[self.key], None)
        if ReturnValues == "ALL_OLD" and old:
            return {"Attributes": old}
        return {}

    def update_item(
        self,
        Key,
        UpdateExpression,
        ExpressionAttributeValues=None,
        ExpressionAttributeNames=None,
        ConditionExpression=None,
        ReturnValues=None,
        **kwargs,
    ):
        self._maybe_fail("UpdateItem")
        key = Key[self.key]
        existing = self.items.get(key)
        values = ExpressionAttributeValues or {}
        self._check(ConditionExpression, existing, ExpressionAttributeNames, "UpdateItem", values)
        item = copy.deepcopy(existing) if existing else {self.key: key}

        tokens = _CLAUSE_RE.split(_subst_names(UpdateExpression, ExpressionAttributeNames))
        for action, body in zip(tokens[1::2], tokens[2::2]):
            for part in _split_top(body):
                if action == "SET":
                    path, expr = part.split("=", 1)
                    item[path.strip()] = _eval(expr, item, values)
                elif action == "REMOVE":
                    indexed = _INDEX_RE.match(part.strip())
                    if indexed:
                        attr, idx = indexed.group(1), int(indexed.group(2))
                        if idx < len(item.get(attr) or []):
                            del item[attr][idx]
                    else:
                        item.pop(part.strip(), None)
                else:
                    path, placeholder = part.split()
                    operand = copy.deepcopy(values[placeholder])
                    if action == "ADD":
                        if isinstance(operand, set):
                            item[path] = set(item.get(path) or set()) | operand
                        else:
                            item[path] = item.get(path, 0) + operand
                    else:
                        remaining = set(item.get(path) or set()) - operand
                        if remaining:
                            item[path] = remaining
                        else:
                            item.pop(path, None)

        self.items[key] = item
        if ReturnValues == "ALL_NEW":
            return {"Attributes": copy.deepcopy(item)}
        return {}

    def query(
        self,
        KeyConditionExpression,
        IndexName=None,
        ScanIndexForward=True,
        Limit=None,
        ExclusiveStartKey=None,
        Select=None,
        **kwargs,
    ):
        self._maybe_fail("Query")
        if IndexName:
            hash_attr, range_attr = self.indexes[IndexName]
        else:
            hash_attr, range_attr = self.key, None
        rows = [it for it in self.items.values() if hash_attr in it and _matches(KeyConditionExpression, it)]
        rows.sort(key=lambda it: (str(it.get(range_attr, "")) if range_attr else "", it[self.key]))
        if not ScanIndexForward:
            rows.reverse()
        return self._page(rows, Limit, ExclusiveStartKey, count_only=Select == "COUNT")

    def scan(self, Limit=None, ExclusiveStartKey=None, **kwargs):
        self._maybe_fail("Scan")
        rows = sorted(self.items.values(), key=lambda it: it[self.key])
        return self._page(rows, Limit, ExclusiveStartKey)


def build_tables() -> SimpleNamespace:
    return SimpleNamespace(
        posts=FakeTable(
            "post_id",
            indexes={
                S.posts_parent_index: ("parent_id", "created_at"),
                S.posts_feed_index: ("feed", "created_at"),
            },
        ),
        users=FakeTable("user_id"),
        communities=FakeTable("community_id", indexes={S.communities_external_index: ("external_id", None)}),
    )


@contextmanager
def use_tables(tables: Optional[SimpleNamespace] = None) -> Iterator[SimpleNamespace]:
    """Point every service at fake tables and a strictly increasing clock."""
    tables = tables or build_tables()
    clock = itertools.count(1)

    def fake_now_iso() -> str:
        return f"2024-01-01T00:00:00.{next(clock):06d}+00:00"

    with ExitStack() as stack:
        for module in (posts, indexes, users, communities):
            stack.enter_context(patch.object(module, "T", tables))
        stack.enter_context(patch.object(posts, "now_iso", fake_now_iso))
        yield tables


def seed_user(tables: SimpleNamespace, user_id: str, *, onboarded: bool = True, **fields: Any) -> Dict[str, Any]:
    item = {
        "user_id": user_id,
        "username": fields.pop("username", user_id.lower()),
        "name": fields.pop("name", user_id),
        "image": fields.pop("image", None),
        "onboarded": onboarded,
        **fields,
    }
    tables.users.items[user_id] = item
    return item


def seed_community(tables: SimpleNamespace, community_id: str, external_id: str, **fields: Any) -> Dict[str, Any]:
    item = {
        "community_id": community_id,
        "external_id": external_id,
        "name": fields.pop("name", external_id),
        "username": fields.pop("username", external_id.lower()),
        **fields,
    }
    tables.communities.items[community_id] = item
    return item


def seed_post(
    tables: SimpleNamespace,
    post_id: str,
    *,
    author_id: str = "u1",
    parent_id: Optional[str] = None,
    created_at: Optional[str] = None,
    children: Optional[List[str]] = None,
    **fields: Any,
) -> Dict[str, Any]:
    """Write a post record directly, bypassing validation and linking."""
    item: Dict[str, Any] = {
        "post_id": post_id,
        "text": fields.pop("text", f"post {post_id}"),
        "author_id": author_id,
        "created_at": created_at or f"2023-01-01T00:00:00.{len(tables.posts.items) + 1:06d}+00:00",
        "children": list(children or []),
        **fields,
    }
    if parent_id is None:
        item["feed"] = posts.FEED_TOP
    else:
        item["parent_id"] = parent_id
    tables.posts.items[post_id] = item
    return item
