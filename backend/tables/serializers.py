from rest_framework import serializers
from .models import Table


class TableSerializer(serializers.ModelSerializer):
    session_number = serializers.CharField(source="current_session.session_number", read_only=True, default=None)
    session_total = serializers.DecimalField(
        source="current_session.total_amount", max_digits=10, decimal_places=2, read_only=True, default=None
    )

    class Meta:
        model = Table
        fields = [
            "id",
            "number",
            "capacity",
            "area",
            "status",
            "current_session",
            "session_number",
            "session_total",
            "is_active",
        ]
        read_only_fields = ["status", "current_session"]
