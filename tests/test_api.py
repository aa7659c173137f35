"""
Test Suite for the Petagri API
Covers auth, konsultasi, tender, distribusi, produk-mitra and roles endpoints
"""

import pytest
from io import BytesIO
from pathlib import Path
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from main import app
from core.config import settings
from db.db_base import get_db
from db.models import (
    Driver, MitraToko, TenderApprove, TenderAssignProduct, TenderOffering, User, Visit,
    VisitRecommendation, VisitReport,
)
from conftest import TestingSessionLocal, auth_headers, make_mitra, token_for, PASSWORD


def override_get_db():
    """Override database dependency for tests"""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db
client = TestClient(app)


REPORT = {"plant_type": "Kopi", "plant_age": "5 tahun", "land_area": 2.5, "problems": "Daun menguning"}

RECOMMENDATIONS = [
    {"product_name": "NPK 16-16-16", "function": "Nutrisi", "dosage": "200 g/pohon", "estimated_qty": "50 kg", "urgency": "segera"},
    {"product_name": "Dolomit", "function": "Pengapuran", "dosage": "1 kg/pohon", "estimated_qty": "250 kg"},
]


def schedule_visit(token: str, farm_id: str, consultant_id: str, scheduled_date: str = "2026-01-10") -> dict:
    response = client.post(
        "/konsultasi/visits",
        json={"farm_id": farm_id, "consultant_id": consultant_id, "scheduled_date": scheduled_date},
        headers=auth_headers(token),
    )
    assert response.status_code == 201, response.text
    return response.json()


def submit_report(token: str, visit_id: str, recommendations=None) -> dict:
    response = client.post(
        f"/konsultasi/visits/{visit_id}/submit",
        json={"report": REPORT, "recommendations": recommendations},
        headers=auth_headers(token),
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def reported_visit(konsultan_token, konsultan_user, farm):
    """A completed visit whose report carries the two sample recommendations."""
    visit = schedule_visit(konsultan_token, farm.id, konsultan_user.id)
    saved = submit_report(konsultan_token, visit["id"], RECOMMENDATIONS)
    return {"visit": visit, "report_id": saved["report_id"]}


@pytest.fixture
def open_assignment(konsultan_token, reported_visit):
    response = client.post(
        "/tender/assignments/from-report",
        json={"visit_id": reported_visit["visit"]["id"], "deadline": "2026-02-01", "message": "Mohon penawaran"},
        headers=auth_headers(konsultan_token),
    )
    assert response.status_code == 201, response.text
    return response.json()


def offer(token: str, assign_id: str, prices=(150000, 40000)) -> dict:
    products = [
        {"product_name": "NPK 16-16-16", "dosage": "200 g/pohon", "qty": 50, "price": prices[0]},
        {"product_name": "Dolomit", "dosage": "1 kg/pohon", "qty": 250, "price": prices[1]},
    ]
    response = client.post(
        "/tender/offerings",
        json={"tender_assign_id": assign_id, "products": products},
        headers=auth_headers(token),
    )
    assert response.status_code == 201, response.text
    return response.json()


def select(token: str, assign_id: str, offering_id: str):
    return client.post(
        f"/tender/assignments/{assign_id}/winner",
        json={"tender_offering_id": offering_id},
        headers=auth_headers(token),
    )


# ============================================================================
# HEALTH CHECK TESTS
# ============================================================================

class TestHealth:
    """Test health check endpoint"""

    def test_health_check(self):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


# ============================================================================
# AUTHENTICATION TESTS
# ============================================================================

class TestAuth:
    """Test authentication endpoints"""

    def test_login_success(self, konsultan_user):
        response = client.post(
            "/auth/login",
            data={"username": "Konsultan@Petagri.id", "password": PASSWORD},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["roles"] == ["konsultan"]
        assert data["full_name"] == "Konsultan Satu"
        assert data["access_token"]

    def test_login_wrong_password(self, konsultan_user):
        response = client.post("/auth/login", data={"username": "konsultan@petagri.id", "password": "salah"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    def test_login_unknown_user(self):
        response = client.post("/auth/login", data={"username": "nobody@petagri.id", "password": "x"})
        assert response.status_code == 401

    def test_me(self, admin_token):
        response = client.get("/auth/me", headers=auth_headers(admin_token))
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "admin@petagri.id"
        assert data["roles"] == ["owner_platform"]
        assert data["is_admin"] is True

    def test_logout(self, konsultan_token):
        response = client.post("/auth/logout", headers=auth_headers(konsultan_token))
        assert response.status_code == 200
        assert response.json()["message"] == "Logged out successfully"

    def test_logout_without_token(self):
        response = client.post("/auth/logout")
        assert response.status_code == 401

    def test_invalid_token(self):
        response = client.get("/auth/me", headers=auth_headers("not-a-jwt"))
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"

    def test_role_required(self, no_role_user):
        response = client.get("/konsultasi/visits", headers=auth_headers(token_for(no_role_user)))
        assert response.status_code == 403
        assert response.json()["detail"] == "Forbidden: insufficient permissions"


# ============================================================================
# KONSULTASI TESTS
# ============================================================================

class TestKebun:
    """Farm CRUD"""

    def test_create_and_get_kebun(self, pemilik_token, pemilik_user):
        response = client.post(
            "/konsultasi/kebun",
            json={"name": "Kebun Teh", "location": "Wonosari", "commodity": "Teh", "area_ha": 4},
            headers=auth_headers(pemilik_token),
        )
        assert response.status_code == 201
        farm = response.json()
        assert farm["status"] == "Aktif"
        assert farm["user_id"] == pemilik_user.id

        response = client.get(f"/konsultasi/kebun/{farm['id']}", headers=auth_headers(pemilik_token))
        assert response.status_code == 200
        assert response.json()["name"] == "Kebun Teh"

    def test_kebun_invalid_status(self, pemilik_token):
        response = client.post(
            "/konsultasi/kebun",
            json={"name": "K", "location": "L", "commodity": "Kopi", "area_ha": 1, "status": "active"},
            headers=auth_headers(pemilik_token),
        )
        assert response.status_code == 422

    def test_update_and_delete_kebun(self, pemilik_token, farm):
        response = client.patch(
            f"/konsultasi/kebun/{farm.id}",
            json={"status": "Nonaktif"},
            headers=auth_headers(pemilik_token),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "Nonaktif"
        assert response.json()["name"] == "Kebun Kopi F1"

        response = client.delete(f"/konsultasi/kebun/{farm.id}", headers=auth_headers(pemilik_token))
        assert response.status_code == 200
        response = client.get(f"/konsultasi/kebun/{farm.id}", headers=auth_headers(pemilik_token))
        assert response.status_code == 404

    @pytest.mark.parametrize("body", [{"name": None}, {"status": None}, {"location": ""}])
    def test_update_kebun_rejects_null_required_fields(self, pemilik_token, farm, body):
        response = client.patch(f"/konsultasi/kebun/{farm.id}", json=body, headers=auth_headers(pemilik_token))
        assert response.status_code == 422

    def test_farm_visits_limited_to_five(self, konsultan_token, konsultan_user, farm):
        for day in range(1, 8):
            schedule_visit(konsultan_token, farm.id, konsultan_user.id, f"2026-03-{day:02d}")
        response = client.get(f"/konsultasi/kebun/{farm.id}/visits", headers=auth_headers(konsultan_token))
        assert response.status_code == 200
        dates = [v["scheduled_date"] for v in response.json()]
        assert dates == ["2026-03-07", "2026-03-06", "2026-03-05", "2026-03-04", "2026-03-03"]


class TestKonsultan:
    """Consultant accounts"""

    def test_admin_creates_konsultan(self, admin_token, test_db: Session):
        response = client.post(
            "/konsultasi/konsultan",
            json={"email": "baru@petagri.id", "password": "rahasia", "full_name": "Konsultan Baru"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 201
        assert response.json()["full_name"] == "Konsultan Baru"

        response = client.get("/konsultasi/konsultan", headers=auth_headers(admin_token))
        assert [k["email"] for k in response.json()] == ["baru@petagri.id"]

    def test_duplicate_email(self, admin_token, konsultan_user):
        response = client.post(
            "/konsultasi/konsultan",
            json={"email": "konsultan@petagri.id", "password": "rahasia", "full_name": "Lagi"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Email sudah terdaftar"

    def test_konsultan_cannot_create_konsultan(self, konsultan_token):
        response = client.post(
            "/konsultasi/konsultan",
            json={"email": "x@petagri.id", "password": "rahasia", "full_name": "X"},
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 403

    def test_update_konsultan(self, admin_token, konsultan_user):
        response = client.patch(
            f"/konsultasi/konsultan/{konsultan_user.id}",
            json={"phone": "0899"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 200
        assert response.json()["phone"] == "0899"

    def test_get_non_konsultan_profile(self, admin_token, pemilik_user):
        response = client.get(f"/konsultasi/konsultan/{pemilik_user.id}", headers=auth_headers(admin_token))
        assert response.status_code == 404


class TestVisits:
    """Visit lifecycle"""

    def test_schedule_visit(self, konsultan_token, konsultan_user, farm):
        visit = schedule_visit(konsultan_token, farm.id, konsultan_user.id)
        assert visit["status"] == "scheduled"
        assert visit["farm_name"] == "Kebun Kopi F1"
        assert visit["consultant_name"] == "Konsultan Satu"

    def test_schedule_visit_unknown_farm(self, konsultan_token, konsultan_user):
        response = client.post(
            "/konsultasi/visits",
            json={"farm_id": "missing", "consultant_id": konsultan_user.id, "scheduled_date": "2026-01-10"},
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 404

    def test_schedule_visit_requires_konsultan_role(self, konsultan_token, mitra_user, farm):
        response = client.post(
            "/konsultasi/visits",
            json={"farm_id": farm.id, "consultant_id": mitra_user.id, "scheduled_date": "2026-01-10"},
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Konsultan tidak ditemukan"

    def test_status_changes_without_transition_table(self, konsultan_token, konsultan_user, farm):
        visit = schedule_visit(konsultan_token, farm.id, konsultan_user.id)
        for status in ("cancelled", "scheduled", "completed"):
            response = client.patch(
                f"/konsultasi/visits/{visit['id']}/status",
                json={"status": status},
                headers=auth_headers(konsultan_token),
            )
            assert response.status_code == 200
            assert response.json()["status"] == status

    def test_invalid_status_rejected(self, konsultan_token, konsultan_user, farm):
        visit = schedule_visit(konsultan_token, farm.id, konsultan_user.id)
        response = client.patch(
            f"/konsultasi/visits/{visit['id']}/status",
            json={"status": "done"},
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 422

    def test_list_visits_visible_to_pemilik(self, konsultan_token, konsultan_user, pemilik_token, farm):
        schedule_visit(konsultan_token, farm.id, konsultan_user.id)
        response = client.get("/konsultasi/visits", headers=auth_headers(pemilik_token))
        assert response.status_code == 200
        assert len(response.json()) == 1


class TestVisitReport:
    """Report and recommendation recording"""

    def test_report_save_completes_visit(self, konsultan_token, konsultan_user, farm):
        visit = schedule_visit(konsultan_token, farm.id, konsultan_user.id)
        response = client.put(
            f"/konsultasi/visits/{visit['id']}/report",
            json=REPORT,
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["created"] is True
        assert data["version"] == 1
        assert data["visit_status"] == "completed"

        detail = client.get(f"/konsultasi/visits/{visit['id']}", headers=auth_headers(konsultan_token)).json()
        assert detail["status"] == "completed"
        assert detail["report"]["plant_type"] == "Kopi"

    def test_saving_twice_keeps_one_report(self, konsultan_token, konsultan_user, farm, test_db: Session):
        visit = schedule_visit(konsultan_token, farm.id, konsultan_user.id)
        first = client.put(f"/konsultasi/visits/{visit['id']}/report", json=REPORT, headers=auth_headers(konsultan_token))
        second = client.put(
            f"/konsultasi/visits/{visit['id']}/report",
            json={**REPORT, "land_area": 3.0},
            headers=auth_headers(konsultan_token),
        )
        assert second.status_code == 200
        assert second.json()["created"] is False
        assert second.json()["report_id"] == first.json()["report_id"]
        assert second.json()["version"] == 2

        reports = test_db.query(VisitReport).filter(VisitReport.visit_id == visit["id"]).all()
        assert len(reports) == 1
        assert reports[0].land_area == 3.0

    def test_report_for_unknown_visit(self, konsultan_token):
        response = client.put("/konsultasi/visits/missing/report", json=REPORT, headers=auth_headers(konsultan_token))
        assert response.status_code == 404

    def test_submit_writes_recommendations(self, reported_visit, konsultan_token):
        detail = client.get(
            f"/konsultasi/visits/{reported_visit['visit']['id']}",
            headers=auth_headers(konsultan_token),
        ).json()
        assert detail["status"] == "completed"
        assert sorted(r["product_name"] for r in detail["recommendations"]) == ["Dolomit", "NPK 16-16-16"]
        urgencies = {r["product_name"]: r["urgency"] for r in detail["recommendations"]}
        assert urgencies == {"NPK 16-16-16": "segera", "Dolomit": "terjadwal"}

    def test_recommendations_replace_set(self, reported_visit, konsultan_token, test_db: Session):
        report_id = reported_visit["report_id"]
        existing = test_db.query(VisitRecommendation).filter(VisitRecommendation.visit_report_id == report_id).all()
        keep = next(r for r in existing if r.product_name == "Dolomit")

        payload = {
            "recommendations": [
                {"id": keep.id, "product_name": "Dolomit", "dosage": "2 kg/pohon"},
                {"product_name": "ZA", "function": "Nitrogen"},
            ],
            "expected_version": 1,
        }
        response = client.put(
            f"/konsultasi/reports/{report_id}/recommendations",
            json=payload,
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["version"] == 2
        assert [r["product_name"] for r in data["recommendations"]] == ["Dolomit", "ZA"]
        assert data["recommendations"][0]["id"] == keep.id

        test_db.expire_all()
        rows = test_db.query(VisitRecommendation).filter(VisitRecommendation.visit_report_id == report_id).all()
        assert sorted(r.product_name for r in rows) == ["Dolomit", "ZA"]
        assert next(r for r in rows if r.id == keep.id).dosage == "2 kg/pohon"

    def test_stale_version_rejected(self, reported_visit, konsultan_token):
        report_id = reported_visit["report_id"]
        body = {"recommendations": [{"product_name": "ZA"}], "expected_version": 1}
        first = client.put(f"/konsultasi/reports/{report_id}/recommendations", json=body, headers=auth_headers(konsultan_token))
        assert first.status_code == 200

        stale = client.put(f"/konsultasi/reports/{report_id}/recommendations", json=body, headers=auth_headers(konsultan_token))
        assert stale.status_code == 409

    def test_foreign_recommendation_id_rejected(self, reported_visit, konsultan_token):
        response = client.put(
            f"/konsultasi/reports/{reported_visit['report_id']}/recommendations",
            json={"recommendations": [{"id": "not-a-row", "product_name": "ZA"}]},
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 400

    def test_upload_field_photo(self, reported_visit, konsultan_token):
        response = client.post(
            f"/konsultasi/visits/{reported_visit['visit']['id']}/report/photo",
            files={"foto_lahan": ("lahan kopi.jpg", BytesIO(b"\xff\xd8\xff-jpeg"), "image/jpeg")},
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 200
        assert response.json()["field_photo_url"].startswith("/uploads/field_photo/lahankopi_")

    def test_replacing_photo_removes_old_file(self, reported_visit, konsultan_token):
        url = f"/konsultasi/visits/{reported_visit['visit']['id']}/report/photo"
        first = client.post(
            url,
            files={"foto_lahan": ("pertama.png", BytesIO(b"png-1"), "image/png")},
            headers=auth_headers(konsultan_token),
        ).json()["field_photo_url"]
        second = client.post(
            url,
            files={"foto_lahan": ("kedua.png", BytesIO(b"png-2"), "image/png")},
            headers=auth_headers(konsultan_token),
        ).json()["field_photo_url"]

        root = Path(settings.UPLOAD_ROOT)
        assert not (root / first.removeprefix("/uploads/")).exists()
        assert (root / second.removeprefix("/uploads/")).read_bytes() == b"png-2"

        served = client.get(second)
        assert served.status_code == 200
        assert served.content == b"png-2"

    def test_upload_field_photo_wrong_type(self, reported_visit, konsultan_token):
        response = client.post(
            f"/konsultasi/visits/{reported_visit['visit']['id']}/report/photo",
            files={"foto_lahan": ("lahan.pdf", BytesIO(b"%PDF"), "application/pdf")},
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 400

    def test_upload_before_report(self, konsultan_token, konsultan_user, farm):
        visit = schedule_visit(konsultan_token, farm.id, konsultan_user.id)
        response = client.post(
            f"/konsultasi/visits/{visit['id']}/report/photo",
            files={"foto_lahan": ("lahan.png", BytesIO(b"png"), "image/png")},
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 404


# ============================================================================
# TENDER TESTS
# ============================================================================

class TestTenderAssignment:
    """Assignments originated from visit reports"""

    def test_draft_products_from_report(self, reported_visit, konsultan_token):
        response = client.get(
            f"/tender/visits/{reported_visit['visit']['id']}/draft-products",
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 200
        lines = response.json()
        assert sorted(line["product_name"] for line in lines) == ["Dolomit", "NPK 16-16-16"]
        assert all(line["qty"] == 1 and line["price"] is None for line in lines)

    def test_from_report_copies_one_product_per_recommendation(self, open_assignment, test_db: Session):
        assert open_assignment["status"] == "open"
        assert open_assignment["farm_name"] == "Kebun Kopi F1"
        rows = test_db.query(TenderAssignProduct).filter(
            TenderAssignProduct.tender_assign_id == open_assignment["id"]
        ).all()
        assert len(rows) == 2

    def test_blank_product_names_skipped(self, reported_visit, konsultan_token):
        response = client.post(
            "/tender/assignments",
            json={
                "visit_id": reported_visit["visit"]["id"],
                "products": [{"product_name": "Urea"}, {"product_name": "   "}],
            },
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 201
        products = response.json()["products"]
        assert [(p["product_name"], p["qty"]) for p in products] == [("Urea", 1)]

    def test_update_replaces_products(self, open_assignment, konsultan_token):
        response = client.patch(
            f"/tender/assignments/{open_assignment['id']}",
            json={"status": "closed", "products": [{"product_name": "KCl", "qty": 10}]},
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "closed"
        assert data["message"] == "Mohon penawaran"
        assert [p["product_name"] for p in data["products"]] == ["KCl"]

    def test_delete_assignment(self, open_assignment, konsultan_token, test_db: Session):
        response = client.delete(f"/tender/assignments/{open_assignment['id']}", headers=auth_headers(konsultan_token))
        assert response.status_code == 200
        assert test_db.query(TenderAssignProduct).count() == 0

    def test_open_list_hides_drafts(self, reported_visit, konsultan_token, mitra_token):
        for status in ("open", "draft"):
            client.post(
                "/tender/assignments",
                json={"visit_id": reported_visit["visit"]["id"], "status": status},
                headers=auth_headers(konsultan_token),
            )
        response = client.get("/tender/assignments/open", headers=auth_headers(mitra_token))
        assert response.status_code == 200
        assert [a["status"] for a in response.json()] == ["open"]


class TestTenderOffering:
    """Partner offerings"""

    def test_create_and_get_offering(self, open_assignment, mitra_token, mitra_user):
        offering = offer(mitra_token, open_assignment["id"])
        assert offering["offered_by"] == mitra_user.id
        assert offering["version"] == 1

        response = client.get(f"/tender/offerings/{offering['id']}", headers=auth_headers(mitra_token))
        assert response.status_code == 200
        detail = response.json()
        assert len(detail["products"]) == 2
        assert len(detail["required_products"]) == 2
        assert detail["is_winner"] is False

    def test_offering_hidden_from_rival_partner(
        self, open_assignment, mitra_token, konsultan_token, pemilik_token, test_db: Session
    ):
        offering = offer(mitra_token, open_assignment["id"])
        rival = make_mitra(test_db, "mitra2@petagri.id", "Toko Dua")
        url = f"/tender/offerings/{offering['id']}"

        assert client.get(url, headers=auth_headers(token_for(rival))).status_code == 403
        assert client.get(url, headers=auth_headers(pemilik_token)).status_code == 403
        assert client.get(url, headers=auth_headers(konsultan_token)).status_code == 200

    def test_offering_on_draft_rejected(self, reported_visit, konsultan_token, mitra_token):
        draft = client.post(
            "/tender/assignments",
            json={"visit_id": reported_visit["visit"]["id"], "status": "draft", "products": [{"product_name": "Urea"}]},
            headers=auth_headers(konsultan_token),
        ).json()
        response = client.post(
            "/tender/offerings",
            json={"tender_assign_id": draft["id"], "products": [{"product_name": "Urea", "price": 1000}]},
            headers=auth_headers(mitra_token),
        )
        assert response.status_code == 400

    def test_offering_without_products_rejected(self, open_assignment, mitra_token):
        response = client.post(
            "/tender/offerings",
            json={"tender_assign_id": open_assignment["id"], "products": [{"product_name": " ", "price": 1}]},
            headers=auth_headers(mitra_token),
        )
        assert response.status_code == 400

    def test_list_my_offerings(self, open_assignment, mitra_token, test_db: Session):
        offer(mitra_token, open_assignment["id"])
        other = make_mitra(test_db, "mitra2@petagri.id", "Toko Dua")
        offer(token_for(other), open_assignment["id"])

        response = client.get("/tender/offerings/mine", headers=auth_headers(mitra_token))
        assert response.status_code == 200
        assert len(response.json()) == 1

    def test_update_products_with_version(self, open_assignment, mitra_token):
        offering = offer(mitra_token, open_assignment["id"])
        npk = next(p for p in offering["products"] if p["product_name"] == "NPK 16-16-16")

        response = client.put(
            f"/tender/offerings/{offering['id']}/products",
            json={"products": [{"id": npk["id"], "product_name": "NPK 16-16-16", "qty": 50, "price": 145000}], "expected_version": 1},
            headers=auth_headers(mitra_token),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["version"] == 2
        assert [(p["id"], p["price"]) for p in data["products"]] == [(npk["id"], 145000)]

        stale = client.put(
            f"/tender/offerings/{offering['id']}/products",
            json={"products": [{"product_name": "Urea", "price": 1}], "expected_version": 1},
            headers=auth_headers(mitra_token),
        )
        assert stale.status_code == 409

    def test_only_owner_edits(self, open_assignment, mitra_token, test_db: Session):
        offering = offer(mitra_token, open_assignment["id"])
        other = make_mitra(test_db, "mitra2@petagri.id", "Toko Dua")
        response = client.put(
            f"/tender/offerings/{offering['id']}/products",
            json={"products": [{"product_name": "Urea", "price": 1}]},
            headers=auth_headers(token_for(other)),
        )
        assert response.status_code == 403

        response = client.delete(f"/tender/offerings/{offering['id']}", headers=auth_headers(token_for(other)))
        assert response.status_code == 403

    def test_delete_offering(self, open_assignment, mitra_token, test_db: Session):
        offering = offer(mitra_token, open_assignment["id"])
        response = client.delete(f"/tender/offerings/{offering['id']}", headers=auth_headers(mitra_token))
        assert response.status_code == 200
        assert test_db.query(TenderOffering).count() == 0


class TestTenderApproval:
    """Winner selection"""

    def test_select_winner_idempotent(self, open_assignment, mitra_token, admin_token, test_db: Session):
        offering = offer(mitra_token, open_assignment["id"])

        first = select(admin_token, open_assignment["id"], offering["id"])
        assert first.status_code == 200
        assert first.json()["created"] is True

        second = select(admin_token, open_assignment["id"], offering["id"])
        assert second.status_code == 200
        assert second.json()["created"] is False
        assert second.json()["id"] == first.json()["id"]

        approves = test_db.query(TenderApprove).filter(TenderApprove.tender_assign_id == open_assignment["id"]).all()
        assert len(approves) == 1
        assert approves[0].winning_tender_offering_id == offering["id"]

    def test_select_other_offering_updates_row(self, open_assignment, mitra_token, admin_token, test_db: Session):
        first = offer(mitra_token, open_assignment["id"])
        other = make_mitra(test_db, "mitra2@petagri.id", "Toko Dua")
        second = offer(token_for(other), open_assignment["id"], prices=(140000, 39000))

        select(admin_token, open_assignment["id"], first["id"])
        response = select(admin_token, open_assignment["id"], second["id"])
        assert response.json()["winning_tender_offering_id"] == second["id"]
        assert test_db.query(TenderApprove).count() == 1

    def test_offering_from_other_assignment_rejected(self, open_assignment, reported_visit, konsultan_token, mitra_token, admin_token):
        other_assign = client.post(
            "/tender/assignments/from-report",
            json={"visit_id": reported_visit["visit"]["id"]},
            headers=auth_headers(konsultan_token),
        ).json()
        offering = offer(mitra_token, other_assign["id"])
        response = select(admin_token, open_assignment["id"], offering["id"])
        assert response.status_code == 400

    def test_offerings_for_assignment(self, open_assignment, mitra_token, admin_token):
        offering = offer(mitra_token, open_assignment["id"])
        select(admin_token, open_assignment["id"], offering["id"])

        response = client.get(f"/tender/assignments/{open_assignment['id']}/offerings", headers=auth_headers(admin_token))
        assert response.status_code == 200
        data = response.json()
        assert data["winning_tender_offering_id"] == offering["id"]
        assert data["offerings"][0]["offered_by_name"] == "Toko Tani Satu"
        assert data["offerings"][0]["offered_by_email"] == "mitra1@petagri.id"
        assert data["offerings"][0]["is_winner"] is True

    def test_winning_offering_cannot_be_deleted(self, open_assignment, mitra_token, admin_token):
        offering = offer(mitra_token, open_assignment["id"])
        select(admin_token, open_assignment["id"], offering["id"])
        response = client.delete(f"/tender/offerings/{offering['id']}", headers=auth_headers(mitra_token))
        assert response.status_code == 400

    def test_list_approvals(self, open_assignment, mitra_token, admin_token):
        offering = offer(mitra_token, open_assignment["id"])
        select(admin_token, open_assignment["id"], offering["id"])

        response = client.get("/tender/approvals", headers=auth_headers(admin_token))
        assert response.status_code == 200
        rows = response.json()
        assert len(rows) == 1
        assert rows[0]["winning_tender_offering_id"] == offering["id"]
        assert rows[0]["total_offerings"] == 1
        assert rows[0]["deadline"] == "2026-02-01"

    def test_konsultan_cannot_select_winner(self, open_assignment, mitra_token, konsultan_token):
        offering = offer(mitra_token, open_assignment["id"])
        response = select(konsultan_token, open_assignment["id"], offering["id"])
        assert response.status_code == 403


# ============================================================================
# DISTRIBUSI TESTS
# ============================================================================

DRIVER = {
    "email": "driver1@petagri.id",
    "password": "rahasia",
    "name": "Budi",
    "driver_code": "DRV-001",
    "vehicle_plate_number": "N 1234 AB",
    "vehicle_type": "truck",
}


class TestDrivers:
    """Driver provisioning"""

    def test_create_driver(self, admin_token, test_db: Session):
        response = client.post("/distribusi/drivers", json=DRIVER, headers=auth_headers(admin_token))
        assert response.status_code == 201
        driver = response.json()
        assert driver["status"] == "active"

        user = test_db.query(User).filter(User.email == "driver1@petagri.id").first()
        assert user.id == driver["id"]

        login = client.post("/auth/login", data={"username": "driver1@petagri.id", "password": "rahasia"})
        assert login.json()["roles"] == ["supir"]

    def test_duplicate_driver_code_leaves_no_account(self, admin_token, test_db: Session):
        client.post("/distribusi/drivers", json=DRIVER, headers=auth_headers(admin_token))
        response = client.post(
            "/distribusi/drivers",
            json={**DRIVER, "email": "driver2@petagri.id"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Kode driver sudah digunakan"
        assert test_db.query(User).filter(User.email == "driver2@petagri.id").first() is None

    def test_update_driver_rejects_null_status(self, admin_token):
        driver = client.post("/distribusi/drivers", json=DRIVER, headers=auth_headers(admin_token)).json()
        response = client.patch(
            f"/distribusi/drivers/{driver['id']}",
            json={"status": None},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 422

        response = client.patch(
            f"/distribusi/drivers/{driver['id']}",
            json={"phone": None, "status": "nonactive"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "nonactive"

    def test_invalid_vehicle_type(self, admin_token):
        response = client.post(
            "/distribusi/drivers",
            json={**DRIVER, "vehicle_type": "bicycle"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 422

    def test_list_and_update_drivers(self, admin_token):
        created = client.post("/distribusi/drivers", json=DRIVER, headers=auth_headers(admin_token)).json()
        response = client.patch(
            f"/distribusi/drivers/{created['id']}",
            json={"status": "nonactive"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 200

        active = client.get("/distribusi/drivers?status=active", headers=auth_headers(admin_token)).json()
        nonactive = client.get("/distribusi/drivers?status=nonactive", headers=auth_headers(admin_token)).json()
        assert active == []
        assert [d["driver_code"] for d in nonactive] == ["DRV-001"]


class TestSuratJalan:
    """Delivery orders of approved tenders"""

    def test_no_winner_is_404(self, open_assignment, mitra_token, admin_token):
        offer(mitra_token, open_assignment["id"])
        response = client.get(f"/distribusi/surat-jalan/{open_assignment['id']}", headers=auth_headers(admin_token))
        assert response.status_code == 404

    def test_surat_jalan_detail_and_delivery(self, open_assignment, mitra_token, mitra_user, admin_token):
        offering = offer(mitra_token, open_assignment["id"])
        select(admin_token, open_assignment["id"], offering["id"])
        driver = client.post("/distribusi/drivers", json=DRIVER, headers=auth_headers(admin_token)).json()

        listing = client.get("/distribusi/surat-jalan", headers=auth_headers(admin_token)).json()
        assert [row["mitra_name"] for row in listing] == ["Toko Tani Satu"]

        response = client.get(f"/distribusi/surat-jalan/{open_assignment['id']}", headers=auth_headers(admin_token))
        assert response.status_code == 200
        detail = response.json()
        assert detail["farm_location"] == "Dampit, Malang"
        assert detail["winner_offering"]["id"] == offering["id"]
        assert detail["winner_mitra"]["id"] == mitra_user.id
        assert len(detail["assignment"]["products"]) == 2
        assert [d["id"] for d in detail["drivers"]] == [driver["id"]]

        response = client.post(
            f"/distribusi/surat-jalan/{open_assignment['id']}/delivery",
            json={"driver_id": driver["id"]},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 201
        assert response.json()["status"] == "pending"
        assert response.json()["mitra_toko_id"] == mitra_user.id

    def test_delivery_needs_active_driver(self, open_assignment, mitra_token, admin_token, test_db: Session):
        offering = offer(mitra_token, open_assignment["id"])
        select(admin_token, open_assignment["id"], offering["id"])
        driver = client.post(
            "/distribusi/drivers",
            json={**DRIVER, "status": "nonactive"},
            headers=auth_headers(admin_token),
        ).json()

        response = client.post(
            f"/distribusi/surat-jalan/{open_assignment['id']}/delivery",
            json={"driver_id": driver["id"]},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 400


class TestDeliveries:
    """Recorded deliveries"""

    def test_list_deliveries_with_driver_and_store(self, open_assignment, mitra_token, admin_token, supir_user):
        offering = offer(mitra_token, open_assignment["id"])
        select(admin_token, open_assignment["id"], offering["id"])
        driver = client.post("/distribusi/drivers", json=DRIVER, headers=auth_headers(admin_token)).json()
        client.post(
            f"/distribusi/surat-jalan/{open_assignment['id']}/delivery",
            json={"driver_id": driver["id"]},
            headers=auth_headers(admin_token),
        )

        response = client.get("/distribusi/deliveries", headers=auth_headers(token_for(supir_user)))
        assert response.status_code == 200
        rows = response.json()
        assert len(rows) == 1
        assert rows[0]["status"] == "pending"
        assert rows[0]["driver_name"] == "Budi"
        assert rows[0]["vehicle_plate_number"] == "N 1234 AB"
        assert rows[0]["mitra_name"] == "Toko Tani Satu"
        assert rows[0]["farm_name"] == "Kebun Kopi F1"

    def test_empty_list(self, admin_token):
        response = client.get("/distribusi/deliveries", headers=auth_headers(admin_token))
        assert response.status_code == 200
        assert response.json() == []

    def test_partner_cannot_list_deliveries(self, mitra_token):
        response = client.get("/distribusi/deliveries", headers=auth_headers(mitra_token))
        assert response.status_code == 403


# ============================================================================
# PRODUK & MITRA TESTS
# ============================================================================

class TestMitra:
    """Partner stores and products"""

    def test_admin_creates_mitra(self, admin_token, test_db: Session):
        response = client.post(
            "/produk-mitra/mitra",
            json={"email": "toko@petagri.id", "password": "rahasia", "name": "Toko Baru", "city": "Batu"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 201
        mitra = response.json()
        assert test_db.query(MitraToko).filter(MitraToko.id == mitra["id"]).first().city == "Batu"

    def test_partner_sees_only_own_store(self, mitra_token, admin_token, test_db: Session):
        make_mitra(test_db, "mitra2@petagri.id", "Toko Dua")

        own = client.get("/produk-mitra/mitra", headers=auth_headers(mitra_token)).json()
        assert [m["name"] for m in own] == ["Toko Tani Satu"]

        everything = client.get("/produk-mitra/mitra", headers=auth_headers(admin_token)).json()
        assert len(everything) == 2

    def test_delete_mitra_removes_account(self, mitra_user, admin_token, test_db: Session):
        mitra_id = mitra_user.id
        response = client.delete(f"/produk-mitra/mitra/{mitra_id}", headers=auth_headers(admin_token))
        assert response.status_code == 200
        test_db.expire_all()
        assert test_db.query(User).filter(User.id == mitra_id).first() is None
        assert test_db.query(MitraToko).count() == 0

    def test_product_crud(self, mitra_user, mitra_token):
        body = {"mitra_id": mitra_user.id, "name": "Urea", "unit": "kg", "base_price": 7500}
        response = client.post("/produk-mitra/products", json=body, headers=auth_headers(mitra_token))
        assert response.status_code == 201
        product = response.json()

        response = client.patch(
            f"/produk-mitra/products/{product['id']}",
            json={"base_price": 8000},
            headers=auth_headers(mitra_token),
        )
        assert response.json()["base_price"] == 8000

        listing = client.get(f"/produk-mitra/products?mitra_id={mitra_user.id}", headers=auth_headers(mitra_token)).json()
        assert [p["name"] for p in listing] == ["Urea"]

        response = client.delete(f"/produk-mitra/products/{product['id']}", headers=auth_headers(mitra_token))
        assert response.status_code == 200

    def test_updates_reject_null_required_fields(self, mitra_user, mitra_token):
        response = client.patch(
            f"/produk-mitra/mitra/{mitra_user.id}", json={"name": None}, headers=auth_headers(mitra_token)
        )
        assert response.status_code == 422

        body = {"mitra_id": mitra_user.id, "name": "Urea", "unit": "kg", "base_price": 7500}
        product = client.post("/produk-mitra/products", json=body, headers=auth_headers(mitra_token)).json()
        for patch in ({"unit": None}, {"name": ""}):
            response = client.patch(
                f"/produk-mitra/products/{product['id']}", json=patch, headers=auth_headers(mitra_token)
            )
            assert response.status_code == 422

    def test_product_price_must_be_positive(self, mitra_user, mitra_token):
        body = {"mitra_id": mitra_user.id, "name": "Urea", "unit": "kg", "base_price": 0}
        response = client.post("/produk-mitra/products", json=body, headers=auth_headers(mitra_token))
        assert response.status_code == 422

    def test_product_for_other_store_forbidden(self, mitra_token, test_db: Session):
        other = make_mitra(test_db, "mitra2@petagri.id", "Toko Dua")
        body = {"mitra_id": other.id, "name": "Urea", "unit": "kg", "base_price": 7500}
        response = client.post("/produk-mitra/products", json=body, headers=auth_headers(mitra_token))
        assert response.status_code == 403


# ============================================================================
# ROLES TESTS
# ============================================================================

class TestRoles:
    """Role catalogue and menu gating"""

    def test_list_roles(self, admin_token):
        response = client.get("/roles", headers=auth_headers(admin_token))
        assert response.status_code == 200
        assert len(response.json()) == 7

    def test_menus_follow_permissions(self, konsultan_token, admin_token, supir_user):
        konsultan = client.get("/roles/me/menus", headers=auth_headers(konsultan_token)).json()
        assert konsultan == {"roles": ["konsultan"], "menus": ["konsultasi", "tender"]}

        admin = client.get("/roles/me/menus", headers=auth_headers(admin_token)).json()
        assert admin["menus"] == ["konsultasi", "tender", "produk-mitra", "distribusi", "user-roles"]

        supir = client.get("/roles/me/menus", headers=auth_headers(token_for(supir_user))).json()
        assert supir["menus"] == ["distribusi"]

    def test_assign_and_remove_role(self, admin_token, no_role_user):
        response = client.post(
            f"/roles/users/{no_role_user.id}",
            json={"role_name": "pemilik_kebun"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 201
        assert response.json()["role"]["name"] == "pemilik_kebun"

        roles = client.get(f"/roles/users/{no_role_user.id}", headers=auth_headers(admin_token)).json()
        assert [r["role"]["name"] for r in roles] == ["pemilik_kebun"]

        response = client.delete(f"/roles/users/{no_role_user.id}/pemilik_kebun", headers=auth_headers(admin_token))
        assert response.status_code == 200
        response = client.delete(f"/roles/users/{no_role_user.id}/pemilik_kebun", headers=auth_headers(admin_token))
        assert response.status_code == 404

    def test_assign_unknown_role(self, admin_token, no_role_user):
        response = client.post(
            f"/roles/users/{no_role_user.id}",
            json={"role_name": "petani"},
            headers=auth_headers(admin_token),
        )
        assert response.status_code == 404

    def test_non_admin_cannot_assign(self, konsultan_token, no_role_user):
        response = client.post(
            f"/roles/users/{no_role_user.id}",
            json={"role_name": "konsultan"},
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 403


# ============================================================================
# DASHBOARD TESTS
# ============================================================================

class TestDashboard:
    """Admin dashboard counts"""

    def test_counts(self, open_assignment, mitra_token, admin_token, no_role_user):
        offering = offer(mitra_token, open_assignment["id"])
        select(admin_token, open_assignment["id"], offering["id"])

        response = client.get("/dashboard/stats", headers=auth_headers(admin_token))
        assert response.status_code == 200
        assert response.json() == {
            "users": 5,
            "farms": 1,
            "konsultan": 1,
            "mitra": 1,
            "open_tenders": 1,
            "approved_tenders": 1,
        }

    def test_empty_database(self, admin_token):
        stats = client.get("/dashboard/stats", headers=auth_headers(admin_token)).json()
        assert stats["users"] == 1
        assert stats["open_tenders"] == 0

    def test_admin_only(self, konsultan_token):
        response = client.get("/dashboard/stats", headers=auth_headers(konsultan_token))
        assert response.status_code == 403


# ============================================================================
# END-TO-END
# ============================================================================

class TestEndToEnd:
    """Visit to approved tender in one pass"""

    def test_visit_to_winner(self, konsultan_token, konsultan_user, farm, mitra_token, admin_token, test_db: Session):
        visit = schedule_visit(konsultan_token, farm.id, konsultan_user.id, "2026-01-10")
        assert visit["status"] == "scheduled"

        saved = client.put(
            f"/konsultasi/visits/{visit['id']}/report",
            json={"plant_type": "Kopi", "land_area": 2.5},
            headers=auth_headers(konsultan_token),
        )
        assert saved.status_code == 200
        assert test_db.query(Visit).filter(Visit.id == visit["id"]).first().status == "completed"

        response = client.put(
            f"/konsultasi/reports/{saved.json()['report_id']}/recommendations",
            json={"recommendations": RECOMMENDATIONS},
            headers=auth_headers(konsultan_token),
        )
        assert response.status_code == 200

        assign = client.post(
            "/tender/assignments/from-report",
            json={"visit_id": visit["id"]},
            headers=auth_headers(konsultan_token),
        ).json()
        assert test_db.query(TenderAssignProduct).filter(TenderAssignProduct.tender_assign_id == assign["id"]).count() == 2

        offering = offer(mitra_token, assign["id"])
        fetched = client.get(f"/tender/offerings/{offering['id']}", headers=auth_headers(mitra_token)).json()
        assert len(fetched["products"]) == 2

        response = select(admin_token, assign["id"], offering["id"])
        assert response.status_code == 200
        approve = test_db.query(TenderApprove).filter(TenderApprove.tender_assign_id == assign["id"]).one()
        assert approve.winning_tender_offering_id == offering["id"]
        assert test_db.query(Driver).count() == 0
