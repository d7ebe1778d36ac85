"""Flask CLI command tests."""

from fluxa.extensions import db
from fluxa.models import Product, User


class TestStockCommands:

    def test_verify_clean(self, app, product):
        result = app.test_cli_runner().invoke(args=["stock", "verify"])
        assert result.exit_code == 0
        assert "matches the ledger" in result.output

    def test_verify_and_rebuild_drift(self, app, product):
        db.session.query(Product).filter_by(id=product.id).update({"quantity": 1})
        db.session.commit()

        runner = app.test_cli_runner()
        verify = runner.invoke(args=["stock", "verify"])
        assert verify.exit_code == 1
        assert "cached=1 ledger=10" in verify.output

        rebuild = runner.invoke(args=["stock", "rebuild", "--product-id", str(product.id)])
        assert rebuild.exit_code == 0
        assert "1 product(s) corrected" in rebuild.output

        db.session.expire_all()
        assert db.session.get(Product, product.id).quantity == 10

    def test_rebuild_unknown_product(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["stock", "rebuild", "--product-id", "999"])
        assert result.exit_code != 0
        assert "not found" in result.output


class TestUserCommands:

    def test_create_user(self, app, db_session):
        result = app.test_cli_runner().invoke(
            args=["users", "create", "--email", "Admin@Fluxa.test", "--password", "s3cret!"]
        )
        assert result.exit_code == 0
        assert db_session.query(User).filter_by(email="admin@fluxa.test").count() == 1

    def test_create_user_short_password(self, app, db_session):
        result = app.test_cli_runner().invoke(
            args=["users", "create", "--email", "admin@fluxa.test", "--password", "123"]
        )
        assert result.exit_code != 0
        assert "Password validation failed" in result.output
