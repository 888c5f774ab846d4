import logging

from django.db import transaction
from django.db.models import Count, Q

from core_backend.exceptions import ConflictError, ValidationError
from .models import Table

logger = logging.getLogger(__name__)


class TableService:
    """
    Occupancy slot for tables. Only the session coordinator should call
    occupy/release; it serializes per table.
    """

    @staticmethod
    def occupy(table: Table, session) -> Table:
        """
        Point the table at ``session``. Fails with ConflictError if the
        table already has an open tab. Uses a conditional update, so two
        concurrent callers can never both succeed.
        """
        updated = Table.objects.filter(
            pk=table.pk, current_session__isnull=True, is_active=True
        ).update(current_session=session, status=Table.TableStatus.OCCUPIED)

        table.refresh_from_db()
        if not updated:
            if not table.is_active:
                raise ConflictError(
                    f"Table {table.number} is not in service", current_state="INACTIVE"
                )
            raise ConflictError(
                f"Table {table.number} already has an open tab",
                current_state=table.status,
                details={"session_id": str(table.current_session_id)},
            )

        logger.info(f"Table {table.number} occupied by session {session.session_number}")
        return table

    @staticmethod
    def release(table: Table, session=None, mark_cleaning: bool = False) -> Table:
        """
        Clear the open-tab slot. When ``session`` is given, only release if the
        table still points at it.
        """
        queryset = Table.objects.filter(pk=table.pk)
        if session is not None:
            queryset = queryset.filter(current_session=session)

        new_status = Table.TableStatus.CLEANING if mark_cleaning else Table.TableStatus.AVAILABLE
        updated = queryset.update(current_session=None, status=new_status)
        table.refresh_from_db()

        if updated:
            logger.info(f"Table {table.number} released ({new_status})")
        return table

    @staticmethod
    @transaction.atomic
    def mark_available(table: Table) -> Table:
        """Finish cleaning. An occupied table cannot be marked available."""
        updated = Table.objects.filter(
            pk=table.pk, current_session__isnull=True
        ).update(status=Table.TableStatus.AVAILABLE)
        table.refresh_from_db()
        if not updated:
            raise ConflictError(
                f"Table {table.number} still has an open tab", current_state=table.status
            )
        return table

    @staticmethod
    def get_availability_summary() -> dict:
        counts = Table.objects.filter(is_active=True).aggregate(
            total=Count("id"),
            available=Count("id", filter=Q(status=Table.TableStatus.AVAILABLE)),
            occupied=Count("id", filter=Q(status=Table.TableStatus.OCCUPIED)),
            reserved=Count("id", filter=Q(status=Table.TableStatus.RESERVED)),
            cleaning=Count("id", filter=Q(status=Table.TableStatus.CLEANING)),
        )
        return counts

    @staticmethod
    def resolve(table_id) -> Table:
        """Returns the active table or None when no id is given."""
        if table_id in (None, ""):
            return None

        try:
            return Table.objects.get(pk=table_id, is_active=True)
        except (Table.DoesNotExist, ValueError, TypeError):
            raise ValidationError(f"Table {table_id} does not exist or is inactive", {"table_id": str(table_id)})
