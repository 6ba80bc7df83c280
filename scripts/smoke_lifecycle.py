#!/usr/bin/env python
"""
End-to-end smoke run against a live CropTrail server.

Registers one farmer, one transporter and one vendor, then walks a batch
through every status:

1. Farmer creates a batch (with farm GPS, so a harvest snapshot is taken)
2. Transporter accepts, picks up, marks in transit
3. Vendor accepts while the batch is on the road
4. Transporter delivers
5. Vendor confirms receipt (runs the AI analysis)
6. Route from farm to market

Upstream API keys must be configured on the server for the snapshots and
the analysis to succeed; failures are printed, not fatal.

Usage:
    python scripts/smoke_lifecycle.py [BASE_URL]
"""

import asyncio
import sys
import time
import uuid

from croptrail.client import CropTrailAPIError, CropTrailClient

FARM = (12.9716, 77.5946)
MARKET = (13.0827, 80.2707)
PASSWORD = "smoke-test-password"


class LifecycleSmokeTest:
    def __init__(self, base_url: str):
        self.base_url = base_url
        self.run_id = uuid.uuid4().hex[:8]

    def banner(self, title: str):
        print("\n" + "=" * 70)
        print(title)
        print("=" * 70)

    async def register(self, role: str) -> CropTrailClient:
        api = CropTrailClient(self.base_url)
        email = f"{role}-{self.run_id}@smoke.example.com"
        user = await api.register(email, PASSWORD, role=role)
        print(f"  {role:<12} {user['id']}  <{email}>")
        return api

    async def run(self) -> int:
        self.banner(f"CropTrail lifecycle smoke run {self.run_id} against {self.base_url}")
        started = time.perf_counter()

        farmer = await self.register("farmer")
        transporter = await self.register("transporter")
        vendor = await self.register("vendor")

        try:
            self.banner("1. Create batch")
            created = await farmer.create_batch(
                crop_type="Tomato",
                harvest_time="2026-10-01T06:00:00Z",
                expected_quality="Grade A",
                quantity_kg=250,
                farm_gps_lat=FARM[0],
                farm_gps_lng=FARM[1],
            )
            batch_id = created["batch"]["id"]
            print(f"  batch {batch_id}")
            print(f"  harvest snapshot: {created['harvest_snapshot']['status']}")

            self.banner("2. Transport")
            await transporter.accept_batch_as_transporter(batch_id)
            pickup = await transporter.record_pickup(batch_id, transport_type="Open truck")
            print(f"  pickup snapshot: {pickup['snapshot']['status']}")
            await transporter.mark_in_transit(batch_id)

            self.banner("3. Vendor claim")
            await vendor.accept_batch_as_vendor(batch_id)

            self.banner("4. Delivery")
            delivery = await transporter.record_delivery(
                batch_id, latitude=MARKET[0], longitude=MARKET[1]
            )
            print(f"  delivery snapshot: {delivery['snapshot']['status']}")

            self.banner("5. Receipt + analysis")
            receipt = await vendor.confirm_receipt(
                batch_id,
                quality_grade="B",
                received_quantity_kg=238,
                spoilage_percentage=3,
                weight_loss_percentage=4.8,
                latitude=MARKET[0],
                longitude=MARKET[1],
            )
            print(f"  status: {receipt['status']}")
            if receipt["analysis"]:
                print(f"  confidence: {receipt['analysis']['confidence_level']}")
                print(f"  degradation: {receipt['analysis']['degradation_point']}")
            else:
                print(f"  ❌ analysis failed: {receipt['analysis_error']}")

            self.banner("6. Route farm → market")
            try:
                route = await farmer.calculate_route(FARM, MARKET)
                print(f"  {route['distance_km']} km, {route['duration_text']}")
            except CropTrailAPIError as exc:
                print(f"  ❌ route failed: {exc}")

            await farmer.fetch_batches()
            view = next(b for b in farmer.batches if b["id"] == batch_id)
            stages = [e["stage"] for e in view["environmental_data"]]
            print(f"\n✅ Final status: {view['status']}  snapshots: {', '.join(stages) or 'none'}")
            print(f"   Elapsed: {time.perf_counter() - started:.2f}s")
            return 0 if view["status"] in ("received", "analyzed") else 1

        except CropTrailAPIError as exc:
            print(f"\n❌ {exc}")
            return 1
        finally:
            for api in (farmer, transporter, vendor):
                await api.aclose()


if __name__ == "__main__":
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
    sys.exit(asyncio.run(LifecycleSmokeTest(base_url).run()))
