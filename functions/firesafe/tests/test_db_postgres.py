import time
import unittest

from firesafe.db import PostgresDbClient
from firesafe.errors import DuplicateKeyError


def house_fields(**overrides):
    fields = {
        "user_id": "user-1",
        "owner_name": "Awa Diop",
        "property_type": "house",
        "city": "Dakar",
        "district": "Plateau",
        "neighborhood": "Medina",
        "street": "Rue 10",
        "parcel_number": "P-42",
        "phone": "+221770000000",
    }
    fields.update(overrides)
    return fields


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def test_house_crud(self):
        house = self.db.create_house(house_fields(photos_urls='["a.png"]'))
        self.assertIsNotNone(house.id)
        self.assertEqual(house.status, "pending")

        updated = self.db.update_house(house.id, {"status": "approved"})
        self.assertEqual(updated.status, "approved")
        self.assertGreaterEqual(updated.updated_at, house.updated_at)
        self.assertEqual(self.db.get_house(house.id).photos_urls, '["a.png"]')

        self.assertIsNone(self.db.update_house(999, {"status": "approved"}))
        self.assertIsNotNone(self.db.delete_house(house.id))
        self.assertIsNone(self.db.get_house(house.id))

    def test_list_houses_paginates_with_total(self):
        for i in range(15):
            self.db.create_house(house_fields(parcel_number=f"P-{i}", created_at=1000.0 + i))
        houses, total = self.db.list_houses(limit=10, offset=0)
        self.assertEqual(len(houses), 10)
        self.assertEqual(total, 15)
        self.assertEqual(houses[0].parcel_number, "P-14")

        houses, total = self.db.list_houses(limit=10, offset=10)
        self.assertEqual(len(houses), 5)

    def test_list_houses_search_joins_owner(self):
        self.db.create_user({"id": "user-2", "email": "m@example.com", "full_name": "Moussa Fall"})
        self.db.create_house(house_fields(user_id="user-2"))
        self.db.create_house(house_fields(city="Thies", status="approved"))

        houses, total = self.db.list_houses(search="MOUSSA")
        self.assertEqual(total, 1)
        self.assertEqual(houses[0].user_id, "user-2")

        _, total = self.db.list_houses(search="thies", status="approved")
        self.assertEqual(total, 1)
        _, total = self.db.list_houses(search="thies", status="pending")
        self.assertEqual(total, 0)

    def test_house_counts_and_periods(self):
        now = time.time()
        self.db.create_house(house_fields(created_at=now - 10))
        self.db.create_house(house_fields(created_at=now - 5000, plan_analysis='{"a": 1}'))
        self.db.create_house(house_fields(created_at=now - 9000, status="approved"))

        self.assertEqual(self.db.count_houses(), 3)
        self.assertEqual(self.db.count_houses(status="approved"), 1)
        self.assertEqual(self.db.count_houses(with_analysis=True), 1)
        self.assertEqual(self.db.count_houses(created_after=now - 6000), 2)
        self.assertEqual(
            self.db.count_houses(created_after=now - 6000, created_before=now - 100), 1
        )
        self.assertEqual(len(self.db.list_houses_created_between(now - 6000, now)), 2)
        self.assertEqual(len(self.db.list_recent_houses(2)), 2)

    def test_users(self):
        user = self.db.create_user({"email": "a@example.com", "full_name": "Awa"})
        self.assertEqual(len(user.id), 32)
        self.assertEqual(self.db.get_user(user.id).full_name, "Awa")
        with self.assertRaises(DuplicateKeyError):
            self.db.create_user({"email": "a@example.com"})

        self.assertEqual(list(self.db.get_users([user.id, "missing"])), [user.id])
        users, total = self.db.list_users(search="awa")
        self.assertEqual(total, 1)
        self.assertEqual(self.db.count_users(created_after=time.time() + 60), 0)

    def test_blog_slug_is_unique(self):
        post = self.db.create_blog_post(
            {"title": "A", "slug": "fire-drills", "author_name": "Admin", "status": "published"}
        )
        with self.assertRaises(DuplicateKeyError):
            self.db.create_blog_post({"title": "B", "slug": "fire-drills", "author_name": "X"})
        self.assertEqual(self.db.get_blog_post(post.id).title, "A")

        other = self.db.create_blog_post({"title": "C", "slug": "other", "author_name": "X"})
        with self.assertRaises(DuplicateKeyError):
            self.db.update_blog_post(other.id, {"slug": "fire-drills"})
        self.assertEqual(self.db.get_blog_post(other.id).slug, "other")

    def test_view_increment_only_for_published(self):
        self.db.create_blog_post(
            {"title": "A", "slug": "live", "author_name": "Admin", "status": "published"}
        )
        self.db.create_blog_post({"title": "B", "slug": "draft", "author_name": "Admin"})

        self.assertEqual(self.db.increment_blog_post_views("live").views, 1)
        self.assertEqual(self.db.increment_blog_post_views("live").views, 2)
        self.assertIsNone(self.db.increment_blog_post_views("draft"))
        self.assertEqual(self.db.get_blog_post_by_slug("draft").views, 0)
        self.assertIsNone(self.db.increment_blog_post_views("missing"))

    def test_list_blog_posts_filters(self):
        self.db.create_blog_post(
            {"title": "Smoke alarms", "slug": "a", "author_name": "X", "status": "published",
             "category": "prevention", "published_at": 10.0}
        )
        self.db.create_blog_post(
            {"title": "Extinguishers", "slug": "b", "author_name": "X", "status": "published",
             "published_at": 20.0}
        )
        self.db.create_blog_post({"title": "Draft", "slug": "c", "author_name": "X"})

        posts, total = self.db.list_blog_posts(status="published", order_by="published_at")
        self.assertEqual(total, 2)
        self.assertEqual([p.slug for p in posts], ["b", "a"])

        _, total = self.db.list_blog_posts(category="prevention")
        self.assertEqual(total, 1)
        _, total = self.db.list_blog_posts(search="smoke")
        self.assertEqual(total, 1)

    def test_push_tokens(self):
        self.db.upsert_push_token("t1", '{"endpoint": "https://push/1"}')
        self.db.upsert_push_token("t1", '{"endpoint": "https://push/1b"}')
        self.db.upsert_push_token("t2", '{"endpoint": "https://push/2"}')
        tokens = {t.id: t for t in self.db.list_push_tokens()}
        self.assertEqual(len(tokens), 2)
        self.assertIn("1b", tokens["t1"].subscription)

        self.assertTrue(self.db.delete_push_token("t1"))
        self.assertFalse(self.db.delete_push_token("t1"))
        self.assertEqual([t.id for t in self.db.list_push_tokens()], ["t2"])

    def test_reports(self):
        report = self.db.create_report("general", {"summary": {"totalHouses": 0}}, 1.0, 2.0)
        reports, total = self.db.list_reports()
        self.assertEqual(total, 1)
        self.assertEqual(reports[0].id, report.id)
        self.assertEqual(reports[0].report_data, {"summary": {"totalHouses": 0}})
        self.assertEqual(self.db.count_reports(created_after=report.generated_at - 1), 1)

    def test_fire_stations(self):
        station = self.db.create_fire_station(
            {"name": "Caserne Nord", "district": "Plateau", "personnel_count": 30}
        )
        self.assertEqual(station.status, "active")
        self.assertFalse(station.ambulance_available)

        updated = self.db.update_fire_station(station.id, {"daily_staff_count": 12})
        self.assertEqual(updated.daily_staff_count, 12)
        self.assertEqual(len(self.db.list_fire_stations()), 1)
        self.assertIsNotNone(self.db.delete_fire_station(station.id))
        self.assertIsNone(self.db.get_fire_station(station.id))

    def test_hydrants_ordered_by_matricule(self):
        for matricule in ("BH-200", "BH-100"):
            self.db.create_hydrant(
                {
                    "matricule": matricule,
                    "city": "Brazzaville",
                    "district": "Poto-Poto",
                    "lat": -4.26,
                    "lng": 15.28,
                }
            )
        hydrants = self.db.list_hydrants()
        self.assertEqual([h.matricule for h in hydrants], ["BH-100", "BH-200"])
        self.assertEqual(hydrants[0].status, "functional")

        with self.assertRaises(DuplicateKeyError):
            self.db.create_hydrant(
                {"matricule": "BH-100", "city": "X", "district": "Y", "lat": 0, "lng": 0}
            )

        self.assertIsNotNone(self.db.delete_hydrant(hydrants[0].id))
        self.assertIsNone(self.db.get_hydrant(hydrants[0].id))

    def test_geo_requests(self):
        geo_request = self.db.create_geo_request("0612345678")
        self.assertEqual(geo_request.status, "pending")
        self.assertIsNone(geo_request.lat)

        located = self.db.locate_geo_request(geo_request.id, -4.26, 15.28, 12.5)
        self.assertEqual(located.status, "located")
        self.assertEqual(located.accuracy, 12.5)
        self.assertIsNotNone(located.located_at)
        self.assertIsNone(self.db.locate_geo_request("missing", 0, 0))

        self.assertEqual(len(self.db.list_geo_requests()), 1)
        self.assertEqual(self.db.count_geo_requests(created_after=time.time() - 60), 1)
        self.assertEqual(self.db.count_geo_requests(created_after=time.time() + 60), 0)


if __name__ == "__main__":
    unittest.main()
