"""
Table Occupancy Tests

A table holds at most one open tab. The occupancy slot is claimed with a
conditional update and only cleared for the session that holds it.
"""
import pytest

from core_backend.exceptions import ConflictError, ValidationError
from orders.models import OrderSession
from orders.services import OrderSessionService
from tables.models import Table
from tables.services import TableService


@pytest.mark.django_db
class TestTableOccupancy:

    def test_open_session_occupies_table(self, open_session, table):
        table.refresh_from_db()

        assert table.status == Table.TableStatus.OCCUPIED
        assert table.current_session == open_session
        assert table.is_occupied

    def test_occupy_twice_conflicts(self, open_session, table, cashier):
        other = OrderSession.objects.create(opened_by=cashier)

        with pytest.raises(ConflictError) as exc_info:
            TableService.occupy(table, other)

        assert exc_info.value.current_state == Table.TableStatus.OCCUPIED
        assert exc_info.value.details["session_id"] == str(open_session.pk)

    def test_inactive_table_cannot_be_occupied(self, other_table, cashier):
        other_table.is_active = False
        other_table.save()
        session = OrderSession.objects.create(opened_by=cashier)

        with pytest.raises(ConflictError) as exc_info:
            TableService.occupy(other_table, session)

        assert exc_info.value.current_state == "INACTIVE"

    def test_release_only_for_holding_session(self, open_session, table, cashier):
        stranger = OrderSession.objects.create(opened_by=cashier)

        TableService.release(table, session=stranger)
        table.refresh_from_db()
        assert table.current_session == open_session

        TableService.release(table, session=open_session)
        assert table.current_session is None
        assert table.status == Table.TableStatus.AVAILABLE

    def test_release_to_cleaning_then_available(self, open_session, table):
        TableService.release(table, session=open_session, mark_cleaning=True)
        assert table.status == Table.TableStatus.CLEANING

        TableService.mark_available(table)
        assert table.status == Table.TableStatus.AVAILABLE

    def test_mark_available_refused_while_occupied(self, open_session, table):
        with pytest.raises(ConflictError):
            TableService.mark_available(table)

    def test_availability_summary(self, open_session, table, other_table):
        summary = TableService.get_availability_summary()

        assert summary["total"] == 2
        assert summary["occupied"] == 1
        assert summary["available"] == 1

    def test_resolve(self, table):
        assert TableService.resolve(None) is None
        assert TableService.resolve("") is None
        assert TableService.resolve(table.pk) == table

        with pytest.raises(ValidationError):
            TableService.resolve(999999)
        with pytest.raises(ValidationError):
            TableService.resolve("not-a-number")

    def test_closed_tab_frees_table_for_next_party(self, open_session, table, cashier):
        OrderSessionService.close_session(open_session, {"method": "CASH", "amount_tendered": "0.00"}, actor=cashier)

        table.refresh_from_db()
        assert table.current_session is None

        again = OrderSessionService.open_session(table=table, opened_by=cashier)
        table.refresh_from_db()
        assert table.current_session == again


@pytest.mark.django_db
class TestTableAPI:

    def test_list_tables(self, cashier_client, table, other_table):
        response = cashier_client.get("/api/tables/")

        assert response.status_code == 200
        numbers = [row["number"] for row in response.data["results"]]
        assert numbers == ["A1", "B2"]

    def test_occupied_table_shows_session(self, cashier_client, open_session, table):
        response = cashier_client.get(f"/api/tables/{table.pk}/")

        assert response.status_code == 200
        assert response.data["status"] == Table.TableStatus.OCCUPIED
        assert response.data["session_number"] == open_session.session_number

    def test_status_is_read_only(self, manager_client, table):
        response = manager_client.patch(
            f"/api/tables/{table.pk}/", {"status": Table.TableStatus.OCCUPIED}, format="json"
        )

        assert response.status_code == 200
        table.refresh_from_db()
        assert table.status == Table.TableStatus.AVAILABLE

    def test_cashier_cannot_create_tables(self, cashier_client):
        response = cashier_client.post("/api/tables/", {"number": "C3"}, format="json")

        assert response.status_code == 403

    def test_summary_endpoint(self, cashier_client, table):
        response = cashier_client.get("/api/tables/summary/")

        assert response.status_code == 200
        assert response.data["available"] == 1
