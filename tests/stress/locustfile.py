"""
Back-office load test with Locust

Hammers one item in one store with concurrent receipts, sales and
adjustments, then checks the stock balance never went negative and still
matches the ledger (run `flask stock reconcile` afterwards).

Prereqs (against a fresh database):
    python -m flask system seed-demo

Run with:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5000

Or headless:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5000 \
           --users 10 --spawn-rate 2 --run-time 60s --headless

Pass thresholds:
- p95 response time < 500ms for reads
- p95 response time < 1000ms for writes
- No 5xx responses (400 for insufficient stock is expected under load)
"""

import os
import random
import time
from datetime import date
from typing import Dict, List

from locust import HttpUser, between, events, task

STORE_ID = int(os.environ.get("STRESS_STORE_ID", "1"))
ITEM_ID = int(os.environ.get("STRESS_ITEM_ID", "1"))
SUPPLIER_ID = int(os.environ.get("STRESS_SUPPLIER_ID", "1"))


# =============================================================================
# METRICS TRACKING
# =============================================================================

class MetricsCollector:
    """Collect and report metrics."""

    def __init__(self):
        self.request_counts: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.response_times: Dict[str, List[float]] = {}
        self.negative_stock_seen = False

    def record(self, name: str, response_time: float, success: bool):
        if name not in self.request_counts:
            self.request_counts[name] = 0
            self.error_counts[name] = 0
            self.response_times[name] = []

        self.request_counts[name] += 1
        if not success:
            self.error_counts[name] += 1
        self.response_times[name].append(response_time)

    def get_summary(self) -> Dict:
        summary = {}
        for name in self.request_counts:
            times = sorted(self.response_times[name])
            count = len(times)
            if count == 0:
                continue

            p95_idx = int(count * 0.95)
            summary[name] = {
                "count": self.request_counts[name],
                "errors": self.error_counts[name],
                "error_rate": self.error_counts[name] / self.request_counts[name] * 100,
                "avg_ms": sum(times) / count,
                "p95_ms": times[p95_idx] if p95_idx < count else times[-1],
            }
        return summary


metrics = MetricsCollector()


# =============================================================================
# USER BEHAVIORS
# =============================================================================

class StockReader(HttpUser):
    """Checks current stock and the item's movement history."""
    wait_time = between(0.5, 2)
    weight = 2

    @task(5)
    def current_stock(self):
        start = time.time()
        response = self.client.get(
            "/api/stock/current",
            params={"store_id": STORE_ID, "item_id": ITEM_ID},
            name="stock/current",
        )
        metrics.record("stock/current", (time.time() - start) * 1000, response.status_code == 200)
        if response.status_code == 200:
            for row in response.json().get("data", []):
                if row.get("quantity_on_hand", 0) < 0:
                    metrics.negative_stock_seen = True

    @task(2)
    def history(self):
        start = time.time()
        response = self.client.get(
            f"/api/stock/{ITEM_ID}/history",
            params={"store_id": STORE_ID, "limit": 20},
            name="stock/history",
        )
        metrics.record("stock/history", (time.time() - start) * 1000, response.status_code == 200)

    @task(1)
    def health_check(self):
        start = time.time()
        response = self.client.get("/api/health", name="system/health")
        metrics.record("system/health", (time.time() - start) * 1000, response.status_code == 200)


class StockWriter(HttpUser):
    """Receives, sells and adjusts the same item concurrently."""
    wait_time = between(0.2, 1)
    weight = 3

    @task(2)
    def create_grn(self):
        start = time.time()
        response = self.client.post(
            "/api/purchase-grns",
            json={
                "supplier_id": SUPPLIER_ID,
                "store_id": STORE_ID,
                "items": [{"item_id": ITEM_ID, "received_qty": random.randint(1, 5), "cost_price": 60}],
            },
            name="grn/create",
        )
        metrics.record("grn/create", (time.time() - start) * 1000, response.status_code == 201)

    @task(4)
    def create_sale(self):
        start = time.time()
        response = self.client.post(
            "/api/sales-retail",
            json={"store_id": STORE_ID, "items": [{"item_id": ITEM_ID, "quantity": random.randint(1, 3)}]},
            name="sales/create",
        )
        # 400 is a refused oversell, which is the correct outcome under contention
        metrics.record("sales/create", (time.time() - start) * 1000, response.status_code in (201, 400))

    @task(1)
    def adjust(self):
        start = time.time()
        response = self.client.post(
            "/api/stock-adjustments",
            json={
                "store_id": STORE_ID,
                "adjustment_date": date.today().isoformat(),
                "reason": "Load test",
                "items": [{"item_id": ITEM_ID, "adjustment_qty": random.choice([-1, 1])}],
            },
            name="adjustments/create",
        )
        metrics.record("adjustments/create", (time.time() - start) * 1000, response.status_code in (201, 400))


# =============================================================================
# EVENT HANDLERS
# =============================================================================

@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary when test stops."""
    print("\n" + "=" * 80)
    print("LOAD TEST SUMMARY")
    print("=" * 80)

    summary = metrics.get_summary()

    print(f"\n{'Endpoint':<30} {'Count':>8} {'Errors':>8} {'Err%':>8} {'Avg(ms)':>10} {'P95(ms)':>10}")
    print("-" * 80)

    total_requests = 0
    total_errors = 0
    all_pass = not metrics.negative_stock_seen

    for name, stats in sorted(summary.items()):
        total_requests += stats["count"]
        total_errors += stats["errors"]

        p95_threshold = 1000 if "create" in name else 500
        passed = stats["p95_ms"] < p95_threshold and stats["error_rate"] < 1

        status = "PASS" if passed else "FAIL"
        if not passed:
            all_pass = False

        print(f"{name:<30} {stats['count']:>8} {stats['errors']:>8} {stats['error_rate']:>7.2f}% {stats['avg_ms']:>9.1f} {stats['p95_ms']:>9.1f} [{status}]")

    print("-" * 80)
    print(f"{'TOTAL':<30} {total_requests:>8} {total_errors:>8} {total_errors/max(total_requests,1)*100:>7.2f}%")
    print("=" * 80)

    if metrics.negative_stock_seen:
        print("\n[FAIL] quantity_on_hand went negative during the run")
    if all_pass:
        print("\n[PASS] All endpoints within thresholds")
    else:
        print("\n[FAIL] Some endpoints exceeded thresholds")
    print("Run 'python -m flask stock reconcile' to verify balances against the ledger.")
    print("=" * 80)
