"""
In-memory stand-ins for the Supabase client and the Stripe gateway.

FakeSupabase implements the slice of the postgrest query builder the
services use and keeps a log of every mutation so tests can assert that a
request wrote nothing.
"""
import re
import threading
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from services.stripe_service import StripeService

_EPOCH = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _like_to_regex(pattern: str) -> "re.Pattern":
    parts = [re.escape(part) for part in pattern.split("%")]
    return re.compile("^" + ".*".join(parts) + "$", re.IGNORECASE | re.DOTALL)


class FakeQuery:
    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.operation = "select"
        self.payload: Any = None
        self.filters: List[Any] = []
        self.order_by: List[Any] = []
        self.limit_count: Optional[int] = None
        self.offset = 0
        self.on_conflict: Optional[str] = None
        self.ignore_duplicates = False

    def select(self, *columns, **kwargs):
        self.operation = "select"
        return self

    def insert(self, payload, **kwargs):
        self.operation = "insert"
        self.payload = payload
        return self

    def update(self, payload, **kwargs):
        self.operation = "update"
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict: str = "", ignore_duplicates: bool = False, **kwargs):
        self.operation = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def delete(self, **kwargs):
        self.operation = "delete"
        return self

    def eq(self, column: str, value: Any):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values: List[Any]):
        allowed = list(values)
        self.filters.append(lambda row: row.get(column) in allowed)
        return self

    def or_(self, expression: str):
        conditions = []
        for clause in expression.split(","):
            column, operator, pattern = clause.split(".", 2)
            if operator not in ("ilike", "like"):
                raise NotImplementedError(f"or_ operator {operator}")
            conditions.append((column, _like_to_regex(pattern)))

        def matches(row):
            return any(regex.match(str(row.get(column) or "")) for column, regex in conditions)

        self.filters.append(matches)
        return self

    def order(self, column: str, desc: bool = False, **kwargs):
        self.order_by.append((column, desc))
        return self

    def limit(self, count: int):
        self.limit_count = count
        return self

    def range(self, start: int, end: int):
        self.offset = start
        self.limit_count = end - start + 1
        return self

    def _matching(self) -> List[Dict[str, Any]]:
        rows = self.client.tables.setdefault(self.table, [])
        return [row for row in rows if all(check(row) for check in self.filters)]

    def execute(self):
        self.client.check_error(self.table)
        with self.client.lock:
            handler = getattr(self, f"_execute_{self.operation}")
            return SimpleNamespace(data=handler())

    def _execute_select(self):
        rows = self._matching()
        for column, desc in reversed(self.order_by):
            rows.sort(key=lambda row: (row.get(column) is None, row.get(column)), reverse=desc)
        rows = rows[self.offset:]
        if self.limit_count is not None:
            rows = rows[:self.limit_count]
        return [dict(row) for row in rows]

    def _execute_insert(self):
        records = self.payload if isinstance(self.payload, list) else [self.payload]
        created = [self.client.add_row(self.table, record) for record in records]
        self.client.log_mutation("insert", self.table)
        return created

    def _execute_update(self):
        updated = []
        for row in self._matching():
            row.update(self.payload)
            updated.append(dict(row))
        self.client.log_mutation("update", self.table)
        return updated

    def _execute_upsert(self):
        records = self.payload if isinstance(self.payload, list) else [self.payload]
        keys = [key.strip() for key in (self.on_conflict or "id").split(",")]
        result = []
        for record in records:
            existing = next(
                (
                    row for row in self.client.tables.setdefault(self.table, [])
                    if all(record.get(key) is not None and row.get(key) == record.get(key) for key in keys)
                ),
                None,
            )
            if existing is None:
                result.append(self.client.add_row(self.table, record))
            elif not self.ignore_duplicates:
                existing.update(record)
                result.append(dict(existing))
        self.client.log_mutation("upsert", self.table)
        return result

    def _execute_delete(self):
        doomed = self._matching()
        rows = self.client.tables.setdefault(self.table, [])
        self.client.tables[self.table] = [row for row in rows if row not in doomed]
        self.client.log_mutation("delete", self.table)
        return [dict(row) for row in doomed]


class FakeRpc:
    def __init__(self, client: "FakeSupabase", name: str, params: Dict[str, Any]):
        self.client = client
        self.name = name
        self.params = params

    def execute(self):
        self.client.check_error(self.name)
        handler = getattr(self.client, f"_rpc_{self.name}")
        with self.client.lock:
            data = handler(**self.params)
        self.client.log_mutation("rpc", self.name)
        return SimpleNamespace(data=data)


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.mutations: List[Any] = []
        self.errors: Dict[str, Exception] = {}
        self.lock = threading.RLock()
        self._clock = 0

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> FakeRpc:
        return FakeRpc(self, name, params)

    def fail(self, target: str, error: Exception):
        """Make every call against a table or rpc raise"""
        self.errors[target] = error

    def check_error(self, target: str):
        if target in self.errors:
            raise self.errors[target]

    def log_mutation(self, operation: str, target: str):
        self.mutations.append((operation, target))

    def next_timestamp(self) -> str:
        self._clock += 1
        return (_EPOCH + timedelta(seconds=self._clock)).isoformat()

    def add_row(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        timestamp = self.next_timestamp()
        row = {"id": str(uuid.uuid4()), "created_at": timestamp, "updated_at": timestamp, **record}
        self.tables.setdefault(table, []).append(row)
        return dict(row)

    def seed(self, table: str, **record) -> Dict[str, Any]:
        """Insert a row without logging a mutation"""
        with self.lock:
            return self.add_row(table, record)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return [dict(row) for row in self.tables.get(table, [])]

    def _usage_row(self, user_id: str, month_year: str) -> Dict[str, Any]:
        for row in self.tables.setdefault("user_usage", []):
            if row["user_id"] == user_id and row["month_year"] == month_year:
                return row
        self.add_row("user_usage", {
            "user_id": user_id,
            "month_year": month_year,
            "recipes_uploaded": 0,
            "images_uploaded": 0,
            "total_image_size": 0,
        })
        return self.tables["user_usage"][-1]

    def _rpc_increment_recipe_usage(self, p_user_id: str, p_month_year: str) -> Dict[str, Any]:
        row = self._usage_row(p_user_id, p_month_year)
        row["recipes_uploaded"] += 1
        return dict(row)

    def _rpc_increment_image_usage(self, p_user_id: str, p_month_year: str, p_size_bytes: int) -> Dict[str, Any]:
        row = self._usage_row(p_user_id, p_month_year)
        row["images_uploaded"] += 1
        row["total_image_size"] += p_size_bytes
        return dict(row)


class FakeStripeService(StripeService):
    """
    Records outgoing Stripe calls instead of making them. Webhook signature
    verification is inherited unchanged.
    """

    def __init__(self, webhook_secret: str = "whsec_test", site_url: str = "http://localhost:3000"):
        super().__init__(api_key="sk_test_fake", webhook_secret=webhook_secret, site_url=site_url)
        self.calls: List[Any] = []
        self.subscriptions: Dict[str, Dict[str, Any]] = {}
        self.error: Optional[Exception] = None

    def _record(self, name: str, **kwargs):
        if self.error is not None:
            raise self.error
        self.calls.append((name, kwargs))

    async def create_checkout_session(self, user_id, price_id, email=None):
        self._record("create_checkout_session", user_id=user_id, price_id=price_id, email=email)
        return {"id": "cs_test_123", "url": "https://checkout.stripe.com/c/pay/cs_test_123"}

    async def create_portal_session(self, customer_id):
        self._record("create_portal_session", customer_id=customer_id)
        return "https://billing.stripe.com/p/session/test"

    async def create_consulting_payment_link(self, user_id, option_id, product_name, description, amount, currency="usd"):
        self._record(
            "create_consulting_payment_link",
            user_id=user_id,
            option_id=option_id,
            product_name=product_name,
            description=description,
            amount=amount,
            currency=currency,
        )
        return "https://buy.stripe.com/test_link"

    async def retrieve_subscription(self, subscription_id):
        self._record("retrieve_subscription", subscription_id=subscription_id)
        return self.subscriptions[subscription_id]

    async def set_cancel_at_period_end(self, subscription_id, cancel):
        self._record("set_cancel_at_period_end", subscription_id=subscription_id, cancel=cancel)
        return {"id": subscription_id, "cancel_at_period_end": cancel}
