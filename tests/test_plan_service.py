"""
test_plan_service.py — Tests for architectural plans.

Authoring rules, catalogue search (JSON overlap filters), file uploads
with a single primary, view tracking and purchases through the
client-side fallbacks.

Called by: pytest
Depends on: app/services/plan_service.py, conftest.py
"""

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from app.models import ArchitecturalPlan, PlanFile, PlanPurchase, SystemNotification
from app.schemas.plans import PlanCreate, PlanPurchaseRequest, PlanSearchFilters, PlanUpdate
from app.services import plan_service
from app.storage import PLAN_FILES, UploadedFile

PDF = b"%PDF-1.4\n" + b"0" * 128


class TestAuthoring:
    def test_defaults(self, db_session, provider_user):
        result = plan_service.create_plan(db_session, PlanCreate(title="Starter Home"), provider_user)
        assert result["status"] == "draft"
        assert result["currency"] == "KSH"
        assert result["floors"] == 1
        assert result["created_by"] == provider_user.id

    def test_provider_publish_becomes_pending(self, db_session, provider_user):
        result = plan_service.create_plan(
            db_session, PlanCreate(title="Farmhouse", status="published", is_featured=True), provider_user
        )
        assert result["status"] == "pending"
        assert result["is_featured"] is False
        assert result["published_at"] is None
        assert db_session.query(SystemNotification).filter_by(type="plan_submitted").count() == 1

    def test_admin_publish(self, db_session, admin_user):
        result = plan_service.create_plan(db_session, PlanCreate(title="Duplex", status="published"), admin_user)
        assert result["status"] == "published"
        assert result["published_at"] is not None

    def test_only_author_or_admin_updates(self, db_session, test_user, admin_user, test_plan):
        assert plan_service.update_plan(db_session, test_plan.id, PlanUpdate(title="x"), test_user)["status"] == 403
        result = plan_service.update_plan(db_session, test_plan.id, PlanUpdate(status="published"), admin_user)
        assert result["status"] == "published"
        assert result["published_at"] is not None

    def test_unpublish_clears_approval(self, db_session, admin_user, test_plan):
        plan_service.update_plan(db_session, test_plan.id, PlanUpdate(status="published"), admin_user)
        plan = db_session.get(ArchitecturalPlan, test_plan.id)
        assert plan.approved_by == admin_user.id
        assert plan.approved_at is not None

        result = plan_service.update_plan(db_session, test_plan.id, PlanUpdate(status="draft"), admin_user)
        assert result["published_at"] is None
        assert plan.approved_by is None
        assert plan.approved_at is None

    def test_author_cannot_publish(self, db_session, provider_user, test_plan):
        result = plan_service.update_plan(db_session, test_plan.id, PlanUpdate(status="published"), provider_user)
        assert result["status"] == 403


class TestCatalogue:
    def test_published_only(self, db_session, test_plan, published_plan):
        assert [p["id"] for p in plan_service.get_published_plans(db_session)] == [published_plan.id]
        assert plan_service.get_plan_by_id(db_session, test_plan.id) is None
        assert plan_service.get_plan_by_id(db_session, test_plan.id, published_only=False) is not None

    def test_final_price_applies_discount(self, db_session, published_plan):
        assert plan_service.plan_to_dict(published_plan)["final_price"] == 270_000

    def test_features_overlap(self, db_session, published_plan):
        hit = plan_service.search_plans(db_session, PlanSearchFilters(features="Pool, gym"))
        miss = plan_service.search_plans(db_session, PlanSearchFilters(features=["gym"]))
        assert [p["id"] for p in hit] == [published_plan.id]
        assert miss == []

    def test_tags_and_ranges(self, db_session, published_plan):
        assert len(plan_service.search_plans(db_session, PlanSearchFilters(tags=["luxury"], min_bedrooms=4))) == 1
        assert plan_service.search_plans(db_session, PlanSearchFilters(max_price=100_000)) == []
        assert plan_service.search_plans(db_session, PlanSearchFilters(style="colonial")) == []


class TestPlanFiles:
    def test_first_upload_is_primary(self, db_session, storage, provider_user, test_plan):
        files = [UploadedFile("ground.pdf", PDF, "application/pdf"), UploadedFile("site.dwg", b"AC1032cad")]
        result = plan_service.upload_plan_files(db_session, storage, test_plan.id, files, "floor_plan", provider_user)
        assert result == {"uploaded": 2, "skipped": []}

        rows = db_session.query(PlanFile).order_by(PlanFile.display_order).all()
        assert [r.display_order for r in rows] == [1, 2]
        assert [r.is_primary for r in rows] == [True, False]
        assert rows[1].file_name.endswith(".dwg")
        assert storage.exists(PLAN_FILES, rows[0].file_name)

    def test_invalid_file_skipped(self, db_session, storage, provider_user, test_plan):
        files = [UploadedFile("readme.txt", b"hello"), UploadedFile("empty.pdf", b"")]
        result = plan_service.upload_plan_files(db_session, storage, test_plan.id, files, "document", provider_user)
        assert result["uploaded"] == 0
        assert len(result["skipped"]) == 2

    def test_set_primary_keeps_single_primary(self, db_session, storage, provider_user, test_plan):
        files = [UploadedFile(f"{i}.pdf", PDF) for i in range(3)]
        plan_service.upload_plan_files(db_session, storage, test_plan.id, files, "floor_plan", provider_user)
        last = db_session.query(PlanFile).order_by(PlanFile.display_order.desc()).first()

        assert plan_service.set_primary_plan_file(db_session, test_plan.id, last.id, provider_user) == {"ok": True}
        primaries = db_session.query(PlanFile).filter(PlanFile.is_primary.is_(True)).all()
        assert [p.id for p in primaries] == [last.id]

    def test_reorder_and_delete(self, db_session, storage, provider_user, test_plan):
        files = [UploadedFile(f"{i}.pdf", PDF) for i in range(2)]
        plan_service.upload_plan_files(db_session, storage, test_plan.id, files, "floor_plan", provider_user)
        first, second = db_session.query(PlanFile).order_by(PlanFile.display_order).all()

        plan_service.reorder_plan_files(db_session, test_plan.id, [second.id, first.id], provider_user)
        db_session.refresh(first)
        db_session.refresh(second)
        assert (second.display_order, first.display_order) == (1, 2)

        path = first.file_name
        assert plan_service.delete_plan_file(db_session, storage, first.id, provider_user) == {"ok": True}
        assert not storage.exists(PLAN_FILES, path)
        assert db_session.query(PlanFile).count() == 1

    def test_deleting_primary_promotes_next(self, db_session, storage, provider_user, test_plan):
        files = [UploadedFile(f"{i}.pdf", PDF) for i in range(3)]
        plan_service.upload_plan_files(db_session, storage, test_plan.id, files, "floor_plan", provider_user)
        first, second, _ = db_session.query(PlanFile).order_by(PlanFile.display_order).all()
        assert first.is_primary is True

        assert plan_service.delete_plan_file(db_session, storage, first.id, provider_user) == {"ok": True}

        db_session.expire_all()
        primaries = db_session.query(PlanFile).filter(PlanFile.is_primary.is_(True)).all()
        assert [p.id for p in primaries] == [second.id]

    def test_failed_delete_keeps_stored_file(self, db_session, storage, provider_user, test_plan):
        plan_service.upload_plan_files(
            db_session, storage, test_plan.id, [UploadedFile("a.pdf", PDF)], "floor_plan", provider_user
        )
        row = db_session.query(PlanFile).one()
        path = row.file_name

        with patch.object(db_session, "commit", side_effect=OperationalError("x", {}, None)):
            result = plan_service.delete_plan_file(db_session, storage, row.id, provider_user)

        assert result == {"error": "Failed to delete file", "status": 500}
        assert storage.exists(PLAN_FILES, path)
        assert db_session.query(PlanFile).count() == 1

    def test_stranger_cannot_upload(self, db_session, storage, test_user, test_plan):
        result = plan_service.upload_plan_files(
            db_session, storage, test_plan.id, [UploadedFile("a.pdf", PDF)], "floor_plan", test_user
        )
        assert result["status"] == 403


class TestViewsAndPurchases:
    def test_track_view_increments(self, db_session, published_plan):
        plan_service.track_plan_view(db_session, published_plan.id, "127.0.0.1", "pytest")
        plan_service.track_plan_view(db_session, published_plan.id)
        db_session.expire_all()
        assert db_session.get(ArchitecturalPlan, published_plan.id).views == 2

    def test_track_view_missing_plan_is_silent(self, db_session):
        plan_service.track_plan_view(db_session, "missing")

    def test_purchase_discounted_amount(self, db_session, published_plan):
        body = PlanPurchaseRequest(customer_email=" Buyer@Estates.test ", customer_name="Amina")
        result = plan_service.process_plan_purchase(db_session, published_plan.id, body)

        purchase = db_session.get(PlanPurchase, result["purchase_id"])
        assert float(purchase.amount) == 270_000
        assert purchase.customer_email == "buyer@estates.test"
        db_session.refresh(published_plan)
        assert published_plan.purchases == 1

        mine = plan_service.get_customer_purchases(db_session, "BUYER@estates.test")
        assert [p["plan_title"] for p in mine] == ["Courtyard Villa"]

    def test_purchase_unpublished_plan(self, db_session, test_plan):
        body = PlanPurchaseRequest(customer_email="a@b.test", customer_name="A")
        assert plan_service.process_plan_purchase(db_session, test_plan.id, body)["status"] == 404
